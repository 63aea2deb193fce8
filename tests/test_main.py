import argparse

import pytest

from orderbook3d.main import build_parser, non_negative_float, settings_from_args, summarize
from orderbook3d.engine.pipeline import assemble
from orderbook3d.types import RateClass, RawSnapshot, ViewModel


def test_settings_from_cli_args():
    args = build_parser().parse_args(
        ["ETHUSDT", "--rate", "15min", "--threshold", "2.5", "--no-pressure", "--search", "3000"]
    )
    settings = settings_from_args(args)
    assert settings.subscription_key == ("ethusdt", RateClass.FIFTEEN_MIN)
    assert settings.quantity_threshold == 2.5
    assert settings.show_pressure_zones is False
    assert settings.search_price == "3000"


def test_defaults():
    settings = settings_from_args(build_parser().parse_args([]))
    assert settings.subscription_key == ("btcusdt", RateClass.REALTIME)
    assert settings.show_pressure_zones is True
    assert settings.history_capacity == 100


def test_negative_threshold_rejected():
    with pytest.raises(argparse.ArgumentTypeError):
        non_negative_float("-1")


def test_summarize():
    assert summarize(ViewModel.empty()) == "insufficient data"
    snap = RawSnapshot((("100", "2"), ("99", "5")), (("101", "3"),), 1)
    line = summarize(assemble((snap,), 0, True, "99"))
    assert "center=100.50" in line
    assert "highlight=99.00" in line
