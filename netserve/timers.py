import threading


def set_timeout(delay: float, fn, *args) -> threading.Timer:
    timer = threading.Timer(delay, fn, args)
    timer.daemon = True
    timer.start()
    return timer


def next_tick(fn, *args) -> threading.Timer:
    """Run ``fn`` soon, on another thread, instead of in the caller's turn."""
    return set_timeout(0, fn, *args)
