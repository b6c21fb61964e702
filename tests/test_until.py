# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Tests of take_until and skip_until, with both a predicate and an
other Observable as the cutoff.
"""
import threading
import unittest

from flowcut.base import from_list
import flowcut.filters
from flowcut.filters.never import never
from utils import ValidationObserver, CaptureObserver, PushSource, \
                  VirtualScheduler, TimedSource


class TestTakeUntilPredicate(unittest.TestCase):
    def test_triggering_event_is_last(self):
        source = PushSource()
        vo = ValidationObserver([1, 2, 3], self)
        source.take_until(lambda v: v >= 3).subscribe(vo)
        source.push(1, 2, 3, 4, 5)
        self.assertTrue(vo.completed)
        self.assertEqual(0, source.active)

    def test_never_triggered(self):
        vo = ValidationObserver([1, 2], self)
        from_list([1, 2]).take_until(lambda v: v > 10).subscribe(vo)
        self.assertTrue(vo.completed)

    def test_predicate_error(self):
        """A failing predicate ends the stream with on_error. The value it
        failed on is not passed on."""
        source = PushSource()
        ct = CaptureObserver(expecting_error=True)
        source.take_until(lambda v: v >= 3).subscribe(ct)
        with self.assertLogs('flowcut.base', level='ERROR'):
            source.push(1, 'x', 2)
        self.assertEqual([1], ct.events)
        self.assertIsInstance(ct.error, TypeError)
        self.assertEqual(1, ct.terminal_count)
        self.assertEqual(0, source.active)


class TestSkipUntilPredicate(unittest.TestCase):
    def test_skip_until(self):
        calls = []
        def at_least_three(v):
            calls.append(v)
            return v >= 3
        vo = ValidationObserver([3, 4, 1], self)
        from_list([1, 2, 3, 4, 1]).skip_until(at_least_three).subscribe(vo)
        self.assertTrue(vo.completed)
        self.assertEqual([1, 2, 3], calls)

    def test_never_triggered(self):
        vo = ValidationObserver([], self)
        from_list([1, 2]).skip_until(lambda v: v > 10).subscribe(vo)
        self.assertTrue(vo.completed)

    def test_predicate_error(self):
        source = PushSource()
        ct = CaptureObserver(expecting_error=True)
        source.skip_until(lambda v: v >= 3).subscribe(ct)
        with self.assertLogs('flowcut.base', level='ERROR'):
            source.push(1, 'x', 4)
        self.assertEqual([], ct.events)
        self.assertIsInstance(ct.error, TypeError)
        self.assertEqual(1, ct.terminal_count)
        self.assertEqual(0, source.active)


class TestTakeUntilOther(unittest.TestCase):
    def test_timed_cutoff(self):
        """Primary emits at t=100,200,300,400 and the other stream fires at
        t=250. We should see the first two values and a completion at
        t=250, with the primary cancelled at that point."""
        scheduler = VirtualScheduler()
        primary = TimedSource(scheduler, [(100, 'a'), (200, 'b'),
                                          (300, 'c'), (400, 'd')],
                              complete_at=500)
        other = TimedSource(scheduler, [(250, 'stop')])
        ct = CaptureObserver()
        primary.take_until(other).subscribe(ct)
        scheduler.advance_to(249)
        self.assertEqual(['a', 'b'], ct.events)
        self.assertFalse(ct.completed)
        scheduler.advance_to(250)
        self.assertTrue(ct.completed)
        self.assertTrue(primary.subscriptions[0].closed)
        self.assertTrue(other.subscriptions[0].closed)
        self.assertEqual([300, 400, 500], sorted(scheduler.cancelled))
        scheduler.advance_to(1000)
        self.assertEqual(['a', 'b'], ct.events)
        self.assertEqual(1, ct.terminal_count)

    def test_primary_completes_first(self):
        scheduler = VirtualScheduler()
        primary = TimedSource(scheduler, [(100, 'a')], complete_at=150)
        other = TimedSource(scheduler, [(250, 'stop')])
        vo = ValidationObserver(['a'], self)
        primary.take_until(other).subscribe(vo)
        scheduler.advance_to(150)
        self.assertTrue(vo.completed)
        self.assertTrue(other.subscriptions[0].closed)
        self.assertEqual([250], scheduler.cancelled)

    def test_primary_error_first(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver(expecting_error=True)
        primary.take_until(other).subscribe(ct)
        primary.push(1)
        primary.fail(ValueError("primary failed"))
        self.assertEqual([1], ct.events)
        self.assertTrue(ct.errored)
        self.assertEqual(0, other.active)

    def test_other_completion_is_cutoff(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver()
        primary.take_until(other).subscribe(ct)
        primary.push(1, 2)
        other.complete()
        primary.push(3)
        self.assertEqual([1, 2], ct.events)
        self.assertTrue(ct.completed)
        self.assertEqual(0, primary.active)

    def test_other_error_is_cutoff(self):
        """An error on the other stream is treated as a plain cutoff. It
        completes the result instead of being passed on."""
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver(expecting_error=False)
        primary.take_until(other).subscribe(ct)
        primary.push(1)
        with self.assertLogs('flowcut.filters.until', level='WARNING'):
            other.fail(ValueError("other failed"))
        self.assertEqual([1], ct.events)
        self.assertTrue(ct.completed)
        self.assertEqual(0, primary.active)

    def test_other_fires_during_subscribe(self):
        primary = PushSource()
        vo = ValidationObserver([], self)
        primary.take_until(from_list(['now'])).subscribe(vo)
        self.assertTrue(vo.completed)
        self.assertEqual([], primary.subscriptions)

    def test_losing_side_is_ignored(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver()
        primary.take_until(other).subscribe(ct)
        primary.push(1)
        other.push('x')
        other.push('y')
        other.complete()
        primary.push(2)
        primary.fail(ValueError("too late"))
        self.assertEqual([1], ct.events)
        self.assertEqual(1, ct.terminal_count)

    def test_cancel_releases_both(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver()
        subscription = primary.take_until(other).subscribe(ct)
        primary.push(1)
        subscription.cancel()
        subscription.cancel()
        primary.push(2)
        other.push('x')
        self.assertEqual([1], ct.events)
        self.assertEqual(0, ct.terminal_count)
        self.assertEqual(0, primary.active)
        self.assertEqual(0, other.active)

    def test_never_other(self):
        vo = ValidationObserver([1, 2], self)
        from_list([1, 2]).take_until(never()).subscribe(vo)
        self.assertTrue(vo.completed)

    def test_concurrent_cutoff(self):
        """The primary completing and the other stream firing at the same
        time from different threads should give exactly one terminal event.
        """
        for i in range(50):
            primary = PushSource()
            other = PushSource()
            ct = CaptureObserver()
            primary.take_until(other).subscribe(ct)
            barrier = threading.Barrier(2)
            def complete_primary():
                barrier.wait()
                primary.complete()
            def fire_other():
                barrier.wait()
                other.push('x')
            threads = [threading.Thread(target=complete_primary),
                       threading.Thread(target=fire_other)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            self.assertEqual(1, ct.terminal_count)
            self.assertTrue(ct.completed)
            self.assertEqual(0, primary.active)
            self.assertEqual(0, other.active)


class TestSkipUntilOther(unittest.TestCase):
    def test_skip_until_other(self):
        primary = PushSource()
        other = PushSource()
        vo = ValidationObserver([3, 4], self)
        primary.skip_until(other).subscribe(vo)
        primary.push(1, 2)
        other.push('go')
        self.assertEqual(0, other.active,
                         "other stream should be cancelled once it fired")
        primary.push(3, 4)
        primary.complete()
        self.assertTrue(vo.completed)

    def test_timed_cutoff(self):
        scheduler = VirtualScheduler()
        primary = TimedSource(scheduler, [(100, 'a'), (200, 'b'),
                                          (300, 'c'), (400, 'd')],
                              complete_at=500)
        other = TimedSource(scheduler, [(250, 'go'), (350, 'again')])
        vo = ValidationObserver(['c', 'd'], self)
        primary.skip_until(other).subscribe(vo)
        scheduler.advance_to(250)
        self.assertTrue(other.subscriptions[0].closed)
        self.assertEqual([350], scheduler.cancelled)
        scheduler.advance_to(1000)
        self.assertTrue(vo.completed)

    def test_other_error_opens_gate(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver(expecting_error=False)
        primary.skip_until(other).subscribe(ct)
        primary.push(1)
        with self.assertLogs('flowcut.filters.until', level='WARNING'):
            other.fail(ValueError("other failed"))
        primary.push(2)
        primary.complete()
        self.assertEqual([2], ct.events)
        self.assertTrue(ct.completed)

    def test_primary_completes_first(self):
        primary = PushSource()
        other = PushSource()
        vo = ValidationObserver([], self)
        primary.skip_until(other).subscribe(vo)
        primary.push(1)
        primary.complete()
        self.assertTrue(vo.completed)
        self.assertEqual(0, other.active)

    def test_primary_error_passes_through(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver(expecting_error=True)
        primary.skip_until(other).subscribe(ct)
        other.push('go')
        primary.push(1)
        primary.fail(ValueError("primary failed"))
        self.assertEqual([1], ct.events)
        self.assertTrue(ct.errored)

    def test_other_fires_during_subscribe(self):
        vo = ValidationObserver([1, 2], self)
        from_list([1, 2]).skip_until(from_list([None])).subscribe(vo)
        self.assertTrue(vo.completed)

    def test_never_other(self):
        vo = ValidationObserver([], self)
        from_list([1, 2]).skip_until(never()).subscribe(vo)
        self.assertTrue(vo.completed)

    def test_cancel_releases_both(self):
        primary = PushSource()
        other = PushSource()
        ct = CaptureObserver()
        subscription = primary.skip_until(other).subscribe(ct)
        subscription.cancel()
        self.assertEqual(0, primary.active)
        self.assertEqual(0, other.active)


if __name__ == '__main__':
    unittest.main()
