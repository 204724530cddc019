import os
import shutil
import socket
import sys
import tempfile
import threading
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from membership.exceptions import WitnessUnavailable
from membership.qdevice import QuorumWitnessMonitor, parse_status
from membership.qdevice.witness import STATUS_QUERY


class FakeHelper(threading.Thread):
    """Answer one status query on a unix socket."""

    def __init__(self, path, reply):
        super().__init__(daemon=True)
        self.reply = reply
        self.query = b""
        self.server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.server.bind(path)
        self.server.listen(1)

    def run(self):
        conn, _ = self.server.accept()
        with conn:
            while not self.query.endswith(b"\n"):
                chunk = conn.recv(64)
                if not chunk:
                    break
                self.query += chunk
            conn.sendall(self.reply)
        self.server.close()


class ParseStatusTest(unittest.TestCase):
    def test_filters_keys_and_detail_lines(self):
        lines = ["State : Connected\n", "  Detail: foo\n", "Model : ffsplit\n"]
        self.assertEqual(parse_status(lines), {"State": "Connected", "Model": "ffsplit"})

    def test_unlisted_keys_dropped(self):
        lines = ["Node ID:  1\n", "QNetd host:  10.0.0.9:5403\n", "Tie-breaker:  Node with lowest node ID\n"]
        self.assertEqual(
            parse_status(lines),
            {"QNetd host": "10.0.0.9:5403", "Tie-breaker": "Node with lowest node ID"},
        )


class WitnessMonitorTest(unittest.TestCase):
    def setUp(self):
        # unix socket paths are limited in length
        self.tmpdir = tempfile.mkdtemp(prefix="qd")
        self.path = os.path.join(self.tmpdir, "s")

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_no_socket_means_no_witness(self):
        self.assertEqual(QuorumWitnessMonitor(self.path).get_status(), {})

    def test_regular_file_is_ignored(self):
        with open(self.path, "w") as f:
            f.write("x")
        self.assertEqual(QuorumWitnessMonitor(self.path).get_status(), {})

    def test_queries_helper(self):
        helper = FakeHelper(self.path, b"State : Connected\n  Detail: foo\nModel : ffsplit\n")
        helper.start()
        status = QuorumWitnessMonitor(self.path, timeout=2.0).get_status()
        helper.join(2.0)
        self.assertEqual(status, {"State": "Connected", "Model": "ffsplit"})
        self.assertEqual(helper.query, STATUS_QUERY)

    def test_unreachable_helper(self):
        dead = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        dead.bind(self.path)
        dead.close()
        with self.assertRaises(WitnessUnavailable):
            QuorumWitnessMonitor(self.path, timeout=1.0).get_status()


if __name__ == "__main__":
    unittest.main()
