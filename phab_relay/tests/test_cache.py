from __future__ import annotations

import threading
import unittest

from phab_relay.cache import LookupCache


class LookupCacheTests(unittest.TestCase):
    def test_get_reports_missing_entries(self) -> None:
        cache = LookupCache()
        self.assertEqual(cache.get("PHID-TASK-1"), ((), False))

    def test_put_is_write_once(self) -> None:
        cache = LookupCache()
        cache.put("PHID-TASK-1", ["first"])
        cache.put("PHID-TASK-1", ["second"])
        self.assertEqual(cache.get("PHID-TASK-1"), (("first",), True))
        self.assertEqual(len(cache), 1)

    def test_claim_skips_cached_and_duplicate_ids(self) -> None:
        cache = LookupCache()
        cache.put("PHID-TASK-1", ["one"])
        to_fetch, waiting = cache.claim(["PHID-TASK-1", "PHID-TASK-2", "PHID-TASK-2"])
        self.assertEqual(to_fetch, ["PHID-TASK-2"])
        self.assertEqual(waiting, [])

    def test_second_claim_waits_on_inflight_id_until_release(self) -> None:
        cache = LookupCache()
        first, _ = cache.claim(["PHID-TASK-1"])
        second, waiting = cache.claim(["PHID-TASK-1", "PHID-TASK-2"])
        self.assertEqual(first, ["PHID-TASK-1"])
        self.assertEqual(second, ["PHID-TASK-2"])
        self.assertEqual(len(waiting), 1)
        self.assertFalse(waiting[0].is_set())

        cache.put("PHID-TASK-1", ["one"])
        cache.release(first)
        self.assertTrue(waiting[0].is_set())

        # released without a value: the next caller may try again
        cache.release(second)
        again, waiting = cache.claim(["PHID-TASK-2"])
        self.assertEqual(again, ["PHID-TASK-2"])
        self.assertEqual(waiting, [])

    def test_concurrent_writers_do_not_lose_entries(self) -> None:
        cache = LookupCache()

        def writer(start: int) -> None:
            for idx in range(start, start + 200):
                cache.put(f"PHID-TASK-{idx}", [str(idx)])
                cache.get(f"PHID-TASK-{idx}")

        threads = [threading.Thread(target=writer, args=(n * 200,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(cache), 1600)
        self.assertEqual(cache.get("PHID-TASK-1599"), (("1599",), True))


if __name__ == "__main__":
    unittest.main()
