import json
from pathlib import Path

import pytest

from app.scraper import replay_harness
from app.scraper.replay_harness import FixturePageDriver, ReplayConfig, load_fixture
from app.scraper.site_selectors import SITE_SELECTORS

TREE = {
    "banks": [
        {
            "code": "ICIC",
            "label": "ICICI Bank",
            "states": [
                {
                    "code": "DL",
                    "label": "Delhi",
                    "districts": [
                        {
                            "code": "ND",
                            "label": "New Delhi",
                            "branches": [
                                {
                                    "code": "CP",
                                    "label": "Connaught Place",
                                    "detail": "IFSC Code: ICIC0000104 MICR Code: 110229002 Address: 9A Phelps Building Contact: 011-23456789",
                                }
                            ],
                        }
                    ],
                }
            ],
        }
    ]
}


def test_load_fixture_rejects_wrong_shape(tmp_path: Path):
    path = tmp_path / "tree.json"
    path.write_text(json.dumps({"foo": "bar"}))

    with pytest.raises(ValueError):
        load_fixture(path)


def test_fixture_driver_behaves_like_the_page():
    driver = FixturePageDriver(TREE)
    driver.load("https://fixture.invalid/", timeout_seconds=1)

    assert driver.read_options(SITE_SELECTORS.state_select) == [("", "State")]
    assert driver.select_value(SITE_SELECTORS.bank_select, "ICIC") is True
    assert driver.read_options(SITE_SELECTORS.state_select) == [("", "State"), ("DL", "Delhi")]
    assert driver.read_container(SITE_SELECTORS.detail_containers) == ("", "")

    # A reload forgets every selection.
    driver.load("https://fixture.invalid/", timeout_seconds=1)
    assert driver.read_options(SITE_SELECTORS.state_select) == [("", "State")]
    assert driver.set_matching_option(SITE_SELECTORS.bank_select, "ICICI") is True
    assert driver.loads == 2


def test_fixture_driver_load_failures():
    driver = FixturePageDriver(TREE, load_failures=1)

    with pytest.raises(RuntimeError):
        driver.load("https://fixture.invalid/", timeout_seconds=1)
    driver.load("https://fixture.invalid/", timeout_seconds=1)
    assert driver.loads == 2


def test_run_replay_scrapes_fixture(data_dirs):
    fixtures_path = data_dirs / "tree.json"
    fixtures_path.write_text(json.dumps(TREE))
    output_dir = data_dirs / "replay_out"

    summary = replay_harness.run_replay(ReplayConfig(fixtures_path=fixtures_path, output_dir=output_dir))

    assert summary["total_records"] == 1
    assert summary["failed_records"] == 0
    assert summary["page_loads"] == 5
    payload = json.loads((output_dir / "FINAL_ALL_BANKS_DATA.json").read_text(encoding="utf-8"))
    assert payload[0]["ifscCode"] == "ICIC0000104"
    assert payload[0]["address"] == "9A Phelps Building"
