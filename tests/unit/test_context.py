"""Tests for RequestContext, document numbering and the clocks."""

from datetime import UTC, datetime

import pytest

from billing_kernel.domain.clock import DeterministicClock, SystemClock
from billing_kernel.domain.context import RequestContext, generate_document_number
from billing_kernel.exceptions import ValidationError


class TestRequestContext:

    def test_tenant_normalized_to_string(self):
        assert RequestContext(tenant_id=7).tenant_id == "7"

    def test_blank_tenant_rejected(self):
        with pytest.raises(ValidationError):
            RequestContext(tenant_id="  ")

    def test_log_fields_omit_missing_user(self):
        assert RequestContext(tenant_id="3").log_fields() == {"tenant_id": "3"}


class TestGenerateDocumentNumber:

    def test_layout(self, deterministic_clock):
        number = generate_document_number(
            "PINV", RequestContext(tenant_id="1"), deterministic_clock
        )
        assert number == "PINV-115032024103045123"

    def test_milliseconds_zero_padded(self):
        clock = DeterministicClock(datetime(2024, 1, 2, 3, 4, 5, 7000, tzinfo=UTC))
        number = generate_document_number("TO", RequestContext(tenant_id="12"), clock)
        assert number == "TO-1202012024030405007"

    def test_advancing_clock_changes_number(self, deterministic_clock):
        ctx = RequestContext()
        first = generate_document_number("SINV", ctx, deterministic_clock)
        deterministic_clock.advance(0.001)
        assert generate_document_number("SINV", ctx, deterministic_clock) != first

    def test_empty_prefix_rejected(self, deterministic_clock):
        with pytest.raises(ValidationError):
            generate_document_number(" ", RequestContext(), deterministic_clock)


class TestClocks:

    def test_deterministic_clock_is_stable(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(60)
        target = datetime(2025, 6, 1, tzinfo=UTC)
        clock.set_time(target)
        assert clock.now() == target

    def test_system_clock_is_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
