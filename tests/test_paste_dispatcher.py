import threading

from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.services.monitor import ClipboardMonitor, MonitorState
from cliprecall.services.paste_dispatcher import PasteDispatcher, PasteFormat

from conftest import FakeClipboard


def test_original_text_writeback(clipboard):
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="hello")
    result = PasteDispatcher(clipboard).writeback(item)
    assert result.ok and result
    assert not result.paste_gesture
    assert clipboard.writes == [("text", "hello")]


def test_paste_requests_gesture(clipboard):
    item = ClipboardItem(content_type=ContentType.LINK, text_content="https://a.io")
    result = PasteDispatcher(clipboard).paste(item)
    assert result.paste_gesture
    assert clipboard.writes == [("text", "https://a.io")]


def test_image_and_files_use_their_representation(clipboard):
    dispatcher = PasteDispatcher(clipboard)
    dispatcher.writeback(ClipboardItem(content_type=ContentType.IMAGE, image_data=b"png"))
    dispatcher.writeback(ClipboardItem(content_type=ContentType.FILE, file_paths=["/tmp/a"]))
    assert clipboard.writes == [("image", b"png"), ("files", ["/tmp/a"])]


def test_plain_text_mode(clipboard):
    dispatcher = PasteDispatcher(clipboard)
    files = ClipboardItem(content_type=ContentType.FILE, file_paths=["/tmp/a", "/tmp/b"])
    color = ClipboardItem(content_type=ContentType.COLOR, color_hex="#123456")

    assert dispatcher.writeback(files, PasteFormat.PLAIN_TEXT).ok
    assert dispatcher.writeback(color, "plainText").ok
    assert clipboard.writes == [("text", "/tmp/a\n/tmp/b"), ("text", "#123456")]


def test_plain_text_of_image_fails(clipboard):
    item = ClipboardItem(content_type=ContentType.IMAGE, image_data=b"png")
    result = PasteDispatcher(clipboard).paste(item, PasteFormat.PLAIN_TEXT)
    assert not result.ok
    assert not result.paste_gesture
    assert result.error
    assert clipboard.writes == []


def test_write_failure_is_reported(clipboard, store, settings):
    clipboard.fail_writes = True
    monitor = ClipboardMonitor(clipboard, store, settings, poll_interval=1.0)
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="x")
    result = PasteDispatcher(clipboard, monitor=monitor).paste(item)
    assert not result.ok
    assert monitor.last_seen is None


def test_self_write_marker_is_reported(clipboard, store, settings):
    monitor = ClipboardMonitor(clipboard, store, settings, poll_interval=1.0)
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="x")
    PasteDispatcher(clipboard, monitor=monitor).writeback(item)
    assert monitor.last_seen == clipboard.count


def test_writeback_is_not_recaptured(clipboard, store, settings):
    monitor = ClipboardMonitor(clipboard, store, settings, poll_interval=1.0)
    dispatcher = PasteDispatcher(clipboard, monitor=monitor, store=store)

    clipboard.copy_text("original")
    assert monitor.tick() is MonitorState.CAPTURED
    clipboard.copy_text("something else")
    assert monitor.tick() is MonitorState.CAPTURED

    first = store.all_items()[1]
    assert dispatcher.paste(first).ok
    assert monitor.tick() is MonitorState.UNCHANGED
    assert len(store) == 2
    monitor.stop()


def test_copy_promotes_item(clipboard, store, clock):
    old = store.insert(ClipboardItem(content_type=ContentType.TEXT, text_content="old",
                                     created_at=clock()))
    clock.advance(seconds=5)
    store.insert(ClipboardItem(content_type=ContentType.TEXT, text_content="new",
                               created_at=clock()))

    result = PasteDispatcher(clipboard, store=store).copy(old)
    assert result.ok
    assert not result.paste_gesture
    head = store.all_items()[0]
    assert head.id == result.item_id
    assert head.text_content == "old"
    assert len(store) == 2


def test_poll_waits_for_writeback_to_finish(store, settings):
    written = threading.Event()
    release = threading.Event()

    class SlowWriteClipboard(FakeClipboard):
        def _write_text(self, text):
            ok = super()._write_text(text)
            # the new contents are visible before the marker is recorded
            written.set()
            release.wait(5)
            return ok

    backend = SlowWriteClipboard()
    monitor = ClipboardMonitor(backend, store, settings, poll_interval=1.0)
    dispatcher = PasteDispatcher(backend, monitor=monitor, store=store)

    backend.copy_text("older")
    monitor.tick()
    backend.copy_text("newer")
    monitor.tick()
    older = store.all_items()[1]

    outcomes = []
    writer = threading.Thread(target=dispatcher.paste, args=(older,))
    poller = threading.Thread(target=lambda: outcomes.append(monitor.tick()))
    writer.start()
    assert written.wait(5)
    poller.start()
    poller.join(0.2)
    assert poller.is_alive()

    release.set()
    writer.join(5)
    poller.join(5)
    assert outcomes == [MonitorState.UNCHANGED]
    assert [item.text_content for item in store.all_items()] == ["newer", "older"]
    monitor.stop()
