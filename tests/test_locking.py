import os
import sys
import tempfile
import threading
import time
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.dirname(__file__))

from cluster_fixtures import (
    CountingStore,
    make_coordinator,
    make_settings,
    seed_document,
    set_members,
    write_authkey,
)
from membership.config.store import FileConfigStore
from membership.exceptions import LockTimeout
from membership.locking import ClusterLockPolicy, LocalMutexGuard, MembershipLockManager


class LocalMutexGuardTest(unittest.TestCase):
    def test_second_holder_times_out(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "lock", "pvecm.lock")
            first = LocalMutexGuard(path, poll_interval=0.01)
            second = LocalMutexGuard(path, poll_interval=0.01)
            with first.acquire(1.0):
                start = time.monotonic()
                with self.assertRaises(LockTimeout):
                    with second.acquire(0.2):
                        pass
                self.assertGreaterEqual(time.monotonic() - start, 0.2)
            with second.acquire(0.2):
                pass

    def test_released_when_body_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            guard = LocalMutexGuard(os.path.join(tmpdir, "pvecm.lock"))
            with self.assertRaises(ValueError):
                with guard.acquire(1.0):
                    raise ValueError("boom")
            self.assertEqual(guard.run(0.2, lambda x: x * 2, 21), 42)


class ClusterLockTest(unittest.TestCase):
    def test_named_lock_times_out(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileConfigStore(tmpdir)
            token = store.acquire_lock("corosync.conf", 1.0)
            with self.assertRaises(LockTimeout) as ctx:
                store.acquire_lock("corosync.conf", 0.2)
            self.assertIn("cfs-lock 'corosync.conf'", str(ctx.exception))
            store.release_lock(token)
            store.release_lock(store.acquire_lock("corosync.conf", 0.2))

    def test_stale_lock_expires(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileConfigStore(tmpdir)
            path = os.path.join(store.lock_dir, "corosync.conf")
            os.makedirs(path)
            old = time.time() - 600
            os.utime(path, (old, old))
            token = store.acquire_lock("corosync.conf", 0.5)
            self.assertEqual(token.name, "corosync.conf")

    def test_expired_holder_cannot_release_new_holder(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileConfigStore(tmpdir)
            first = store.acquire_lock("corosync.conf", 0.5)
            path = os.path.join(store.lock_dir, "corosync.conf")
            old = time.time() - 600
            os.utime(path, (old, old))

            second = store.acquire_lock("corosync.conf", 0.5)
            self.assertNotEqual(first.owner, second.owner)

            store.release_lock(first)
            with self.assertRaises(LockTimeout):
                store.acquire_lock("corosync.conf", 0.3)

            store.release_lock(second)
            store.release_lock(store.acquire_lock("corosync.conf", 0.3))


class LockPolicyTest(unittest.TestCase):
    def _manager(self, tmpdir, store):
        guard = LocalMutexGuard(os.path.join(tmpdir, "pvecm.lock"))
        return MembershipLockManager(guard, store, timeout=1.0)

    def test_single_member_skips_cluster_lock(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CountingStore(os.path.join(tmpdir, "pve"), forbid_cluster_lock=True)
            set_members(store, ["node1"])
            self.assertEqual(self._manager(tmpdir, store).run(lambda: "done"), "done")

    def test_policy_threshold(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileConfigStore(tmpdir)
            policy = ClusterLockPolicy()
            self.assertFalse(policy.needs_cluster_lock(store))
            set_members(store, ["node1"])
            self.assertFalse(policy.needs_cluster_lock(store))
            set_members(store, ["node1", "node2"])
            self.assertTrue(policy.needs_cluster_lock(store))

    def test_multiple_members_take_cluster_lock(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CountingStore(os.path.join(tmpdir, "pve"))
            set_members(store, ["node1", "node2"])
            manager = self._manager(tmpdir, store)
            manager.run(lambda: None)
            manager.run(lambda: None)
            self.assertEqual(store.lock_calls, 2)
            self.assertEqual(os.listdir(store.lock_dir), [])

    def test_add_node_on_single_member_cluster(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = make_settings(tmpdir)
            store = CountingStore(settings.store_dir, forbid_cluster_lock=True)
            coordinator = make_coordinator(tmpdir, store=store)
            try:
                set_members(store, ["node1"])
                seed_document(store, {"node1": {"nodeid": 1, "ring0_addr": "10.0.0.1"}})
                write_authkey(settings)
                result = coordinator.add_node("node2", link0="10.0.0.2")
                self.assertEqual(result["corosync_conf"]["nodelist"]["node2"]["nodeid"], 2)
            finally:
                coordinator.shutdown()


class ConcurrentAddTest(unittest.TestCase):
    def test_parallel_adds_get_distinct_ids(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            coordinator = make_coordinator(tmpdir)
            try:
                store = coordinator.store
                set_members(store, ["node1", "node2"])
                seed_document(
                    store,
                    {
                        "node1": {"nodeid": 1, "ring0_addr": "10.0.0.1"},
                        "node2": {"nodeid": 2, "ring0_addr": "10.0.0.2"},
                    },
                )
                write_authkey(coordinator.settings)

                errors = []

                def add(i):
                    try:
                        coordinator.add_node(f"extra{i}", link0=f"10.0.1.{i}")
                    except Exception as exc:
                        errors.append(exc)

                threads = [threading.Thread(target=add, args=(i,)) for i in range(4)]
                for t in threads:
                    t.start()
                for t in threads:
                    t.join()

                self.assertEqual(errors, [])
                doc = store.read_document()
                ids = sorted(entry.nodeid for entry in doc.nodelist.values())
                self.assertEqual(ids, [1, 2, 3, 4, 5, 6])
                self.assertEqual(doc.totem.config_version, 5)
                self.assertEqual(store.lock_calls, 4)
            finally:
                coordinator.shutdown()


if __name__ == "__main__":
    unittest.main()
