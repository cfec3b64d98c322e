import logging

from vmv.progress import LoggingProgressListener, ProgressListener, ProgressNotifier


class RecordingListener(ProgressListener):
    def __init__(self):
        self.events = []

    def on_start(self, name):
        self.events.append(("start", name))

    def on_progress(self, percent):
        self.events.append(("progress", percent))

    def on_end(self):
        self.events.append(("end",))


def test_notifier_dispatches_to_all_listeners():
    notifier = ProgressNotifier()
    first, second = RecordingListener(), RecordingListener()
    notifier.add(first)
    notifier.add(second)

    notifier.start("lot")
    notifier.update(50.0)
    notifier.end()

    assert first.events == [("start", "lot"), ("progress", 50.0), ("end",)]
    assert second.events == first.events


def test_add_and_remove_are_idempotent():
    notifier = ProgressNotifier()
    listener = RecordingListener()

    notifier.add(listener)
    notifier.add(listener)
    notifier.start("lot")
    assert listener.events == [("start", "lot")]

    notifier.remove(listener)
    notifier.remove(listener)
    notifier.end()
    assert listener.events == [("start", "lot")]


def test_listener_removed_during_notification():
    notifier = ProgressNotifier()
    other = RecordingListener()

    class Removing(ProgressListener):
        def on_start(self, name):
            notifier.remove(other)

    notifier.add(Removing())
    notifier.add(other)

    notifier.start("lot")
    notifier.end()

    assert other.events == [("start", "lot")]


def test_logging_listener(caplog):
    listener = LoggingProgressListener(logging.getLogger("vmv.test"))

    with caplog.at_level(logging.INFO, logger="vmv.test"):
        listener.on_start("Chiffrement des votes")
        listener.on_progress(50.0)
        listener.on_end()

    assert [r.getMessage() for r in caplog.records] == ["Chiffrement des votes...", "50%", "Terminé"]
