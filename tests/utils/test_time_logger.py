"""Tests of the timing decorator."""
import cfstpfa as ct


@ct.time_logger(sections=["assembly"])
def _add(a, b=1):
    """Add two numbers."""
    return a + b


def test_decorated_function_unchanged():
    assert _add(2) == 3
    assert _add(2, b=5) == 7
    assert _add.__name__ == "_add"
    assert _add.__doc__ == "Add two numbers."


def test_decorated_method():
    class Counter:
        def __init__(self):
            self.count = 0

        @ct.time_logger(sections=["numerics"])
        def increase(self, n):
            self.count += n
            return self.count

    counter = Counter()
    counter.increase(2)
    assert counter.increase(3) == 5
