import pytest

from pagomatic import performance_logger
from pagomatic.performance_logger import get_function_stats, profile_function, reset_stats


@pytest.fixture(autouse=True)
def clean_stats():
    reset_stats()
    yield
    reset_stats()


@pytest.mark.skipif(not performance_logger.ENABLE_PROFILING, reason='profiling desactivado')
def test_profiled_function_counts_calls():
    @profile_function(name='Prueba')
    def double(x):
        return x * 2

    assert double(2) == 4
    assert double(3) == 6

    stats = get_function_stats()['Prueba']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time'] >= 0


@pytest.mark.skipif(not performance_logger.ENABLE_PROFILING, reason='profiling desactivado')
def test_exceptions_are_still_measured():
    @profile_function
    def broken():
        raise RuntimeError('x')

    with pytest.raises(RuntimeError):
        broken()

    assert get_function_stats()['broken']['calls'] == 1


def test_ledger_recompute_is_profiled(container):
    container.ledger_service.refresh()
    if performance_logger.ENABLE_PROFILING:
        assert 'Recalcular libro mayor' in get_function_stats()
