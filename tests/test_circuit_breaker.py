"""
Tests for circuit breaker pattern.
"""

import asyncio

import pytest

from messleave.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


async def failing_func():
    raise RuntimeError("Test failure")


async def successful_func():
    return "success"


async def open_circuit(cb):
    for _ in range(cb.failure_threshold):
        with pytest.raises(RuntimeError):
            await cb.call(failing_func)


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    def test_initial_state_closed(self):
        """Circuit breaker should start in CLOSED state."""
        cb = CircuitBreaker(failure_threshold=3, timeout=5)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    async def test_successful_call_in_closed_state(self):
        cb = CircuitBreaker(failure_threshold=3)

        assert await cb.call(successful_func) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    async def test_arguments_passed_through(self):
        cb = CircuitBreaker()

        async def add(a, b=0):
            return a + b

        assert await cb.call(add, 2, b=3) == 5

    async def test_single_failure_stays_closed(self):
        cb = CircuitBreaker(failure_threshold=3)

        with pytest.raises(RuntimeError):
            await cb.call(failing_func)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 1

    async def test_success_resets_failure_count(self):
        """Only consecutive failures open the circuit."""
        cb = CircuitBreaker(failure_threshold=2)

        with pytest.raises(RuntimeError):
            await cb.call(failing_func)
        await cb.call(successful_func)
        with pytest.raises(RuntimeError):
            await cb.call(failing_func)

        assert cb.state == CircuitState.CLOSED

    async def test_threshold_failures_opens_circuit(self):
        cb = CircuitBreaker(failure_threshold=3)

        await open_circuit(cb)

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 3

    async def test_open_circuit_blocks_calls(self):
        cb = CircuitBreaker(failure_threshold=2)
        await open_circuit(cb)

        with pytest.raises(CircuitBreakerOpenError):
            await cb.call(successful_func)

    async def test_half_open_success_closes_circuit(self):
        cb = CircuitBreaker(failure_threshold=2, timeout=0.05)
        await open_circuit(cb)

        await asyncio.sleep(0.1)

        assert await cb.call(successful_func) == "success"
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    async def test_half_open_failure_reopens_circuit(self):
        cb = CircuitBreaker(failure_threshold=2, timeout=0.05)
        await open_circuit(cb)

        await asyncio.sleep(0.1)

        with pytest.raises(RuntimeError):
            await cb.call(failing_func)

        assert cb.state == CircuitState.OPEN

    def test_get_state_returns_dict(self):
        cb = CircuitBreaker(failure_threshold=5, name="TestBreaker")

        state = cb.get_state()

        assert state["name"] == "TestBreaker"
        assert state["state"] == "closed"
        assert state["failure_count"] == 0
        assert state["failure_threshold"] == 5
