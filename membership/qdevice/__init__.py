from .witness import STATUS_KEYS, QuorumWitnessMonitor, parse_status

__all__ = ["STATUS_KEYS", "QuorumWitnessMonitor", "parse_status"]
