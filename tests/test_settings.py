import os
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import start_api
from api.main import app
from membership import Settings


class SettingsFromEnvTest(unittest.TestCase):
    def test_defaults(self):
        settings = Settings.from_env({}, nodename="pve1")
        self.assertEqual(settings.nodename, "pve1")
        self.assertEqual(settings.store_dir, "/etc/pve")
        self.assertEqual(settings.lock_timeout, 10.0)
        self.assertEqual(settings.task_dir, "/var/lib/pve-cluster/tasks")

    def test_env_values_and_overrides(self):
        env = {
            "MEMBERSHIP_NODENAME": "env_node",
            "MEMBERSHIP_STORE_DIR": "/srv/pve",
            "MEMBERSHIP_LOCK_TIMEOUT": "2.5",
            "MEMBERSHIP_API_PORT": "9006",
        }
        settings = Settings.from_env(env, store_dir=None, api_port=8100)
        self.assertEqual(settings.nodename, "env_node")
        self.assertEqual(settings.store_dir, "/srv/pve")
        self.assertEqual(settings.lock_timeout, 2.5)
        self.assertEqual(settings.api_port, 8100)


class StartApiArgsTest(unittest.TestCase):
    def tearDown(self):
        app.state.coordinator = None

    def test_env_and_cli_parsing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            env = {
                "MEMBERSHIP_NODENAME": "env_node",
                "MEMBERSHIP_STORE_DIR": os.path.join(tmpdir, "env_store"),
                "MEMBERSHIP_API_PORT": "8001",
            }
            args = [
                "--node",
                "cli",
                "--port",
                "9200",
                "--state-dir",
                os.path.join(tmpdir, "state"),
                "--lock-timeout",
                "3",
            ]
            with patch.dict(os.environ, env, clear=True):
                with patch("start_api.ClusterCoordinator") as MockCoordinator, patch(
                    "start_api.uvicorn"
                ) as mock_uvicorn:
                    start_api.main(args)
                    settings = MockCoordinator.call_args[0][0]
                    self.assertEqual(settings.nodename, "cli")
                    self.assertEqual(settings.api_port, 9200)
                    self.assertEqual(settings.store_dir, os.path.join(tmpdir, "env_store"))
                    self.assertEqual(settings.state_dir, os.path.join(tmpdir, "state"))
                    self.assertEqual(settings.lock_timeout, 3.0)
                    self.assertIs(app.state.coordinator, MockCoordinator.return_value)
                    mock_uvicorn.run.assert_called_once()
                    self.assertEqual(mock_uvicorn.run.call_args.kwargs["port"], 9200)


if __name__ == "__main__":
    unittest.main()
