from .manager import Task, TaskManager, TaskState

__all__ = ["Task", "TaskManager", "TaskState"]
