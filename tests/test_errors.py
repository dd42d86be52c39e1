"""Tests for the error taxonomy — every kind has a stable numeric code."""

import pytest

from ecoflow import errors
from ecoflow.errors import ERROR_CODES, EcoFlowError, ErrorKind


class TestErrorCodes:
    def test_every_kind_has_a_code(self) -> None:
        assert set(ERROR_CODES) == set(ErrorKind)

    def test_codes_are_unique(self) -> None:
        assert len(set(ERROR_CODES.values())) == len(ERROR_CODES)

    @pytest.mark.parametrize("cls,code", [
        (errors.NotAuthorized, 100),
        (errors.InsufficientBalance, 101),
        (errors.SupplyCapExceeded, 103),
        (errors.OfferNotFound, 202),
        (errors.Expired, 203),
        (errors.EscrowFailure, 207),
        (errors.AlreadyClaimed, 208),
    ])
    def test_published_codes(self, cls, code: int) -> None:
        assert cls().code == code

    def test_one_class_per_kind(self) -> None:
        kinds = {
            obj.kind for obj in vars(errors).values()
            if isinstance(obj, type) and issubclass(obj, EcoFlowError) and obj is not EcoFlowError
        }
        assert kinds == set(ErrorKind)


class TestErrorBehaviour:
    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            raise errors.Paused()

    def test_default_message(self) -> None:
        assert str(errors.BatchLimitExceeded()) == "batch limit exceeded"

    def test_custom_message(self) -> None:
        err = errors.Expired("offer gone")
        assert str(err) == "offer gone"
        assert err.kind == ErrorKind.EXPIRED
