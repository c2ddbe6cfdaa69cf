import pytest

from minikernel.arraystack import StackEmptyError, StackFullError
from minikernel.inheritstack import ArrayStack, ListStack, Stack, main


@pytest.fixture(params=["array", "list"])
def stack(request):
    return ArrayStack(10) if request.param == "array" else ListStack()


def test_stack_is_abstract():
    with pytest.raises(TypeError):
        Stack()


def test_push_pop_is_lifo(stack):
    for value in (3, 4, 5):
        stack.push(value)
    assert [stack.pop(), stack.pop(), stack.pop()] == [5, 4, 3]
    assert stack.is_empty()


def test_pop_empty_raises(stack):
    with pytest.raises(StackEmptyError):
        stack.pop()


def test_array_stack_full():
    s = ArrayStack(2)
    s.push(1)
    assert not s.is_full()
    s.push(2)
    assert s.is_full()
    with pytest.raises(StackFullError):
        s.push(3)


def test_array_stack_rejects_bad_size():
    with pytest.raises(ValueError):
        ArrayStack(0)


def test_list_stack_never_full():
    s = ListStack()
    for value in range(100):
        s.push(value)
    assert s.is_full() is False
    assert len(s) == 100


def test_self_test_output(stack, capsys):
    popped = stack.self_test(10)
    assert popped == list(reversed(range(17, 27)))
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "pushing 17"
    assert lines[-1] == "popping 17"
    assert len(lines) == 20


def test_self_test_overflows_small_array_stack(capsys):
    with pytest.raises(StackFullError):
        ArrayStack(3).self_test(4)


def test_main_runs_both(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "Testing ArrayStack" in out
    assert "Testing ListStack" in out
    assert out.count("pushing 17") == 2