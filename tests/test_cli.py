from __future__ import annotations

import pytest
import typer
from typer.testing import CliRunner

from clocking.cli import app, read_title
from clocking.store import open_store

from conftest import at

runner = CliRunner()


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / "clocking.sqlite3")


def invoke(*args, input=None):
    return runner.invoke(app, list(args), input=input)


def test_start_no_wait_then_finish(db_file):
    started = invoke("start", "Writing", "--no-wait", "--file", db_file)
    assert started.exit_code == 0, started.output
    assert "(Started)" in started.output

    listed = invoke("unfinished", "--file", db_file)
    assert "Writing:" in listed.output
    assert "Running for" in listed.output

    finished = invoke("finish", "Writing", "-n", "draft", "-n", "more", "--file", db_file)
    assert "(Finished Writing)" in finished.output

    latest = invoke("latest", "Writing", "--file", db_file)
    assert "\t  draft\n\t  more\n" in latest.output


def test_start_waits_for_notes(db_file):
    result = invoke("start", "Writing", "--file", db_file, input="first thought\n")
    assert result.exit_code == 0, result.output
    assert "(Finished)" in result.output

    with open_store(db_file) as store:
        assert store.latest_finished("Writing").notes == "first thought\n"
        assert store.query_unfinished(10) == []


def test_start_notes_and_typed_notes_are_separate_lines(db_file):
    result = invoke("start", "Writing", "--notes", "plan", "--file", db_file, input="did it\n")
    assert result.exit_code == 0, result.output
    with open_store(db_file) as store:
        assert store.latest_finished("Writing").notes == "plan\ndid it\n"


def test_start_blocked_by_unfinished(db_file):
    invoke("start", "Writing", "--no-wait", "--file", db_file)
    result = invoke("start", "Reading", "--no-wait", "--file", db_file)
    assert result.exit_code == 1
    assert "unfinished entry: Writing" in result.output


def test_start_chooses_recent_title(db_file):
    invoke("start", "Writing", "--no-wait", "--file", db_file)
    invoke("finish", "--file", db_file)

    result = invoke("start", "--no-wait", "--file", db_file, input="1\n")
    assert result.exit_code == 0, result.output
    assert "1: Writing" in result.output
    with open_store(db_file) as store:
        assert [entry.id.title for entry in store.query_unfinished(10)] == ["Writing"]


def test_finish_reads_notes_from_stdin(db_file):
    invoke("start", "Writing", "--no-wait", "--file", db_file)
    result = invoke("finish", "Writing", "-n", "-", "--file", db_file, input="piped\n")
    assert "(Finished Writing)" in result.output
    with open_store(db_file) as store:
        assert store.latest_finished("Writing").notes == "piped\n"


def test_finish_with_nothing_running(db_file):
    assert "(No unfinished entry)" in invoke("finish", "--file", db_file).output
    assert "(No unfinished entry found by X)" in invoke("finish", "X", "--file", db_file).output


def test_report_views(db_file):
    assert "(No finished entries)" in invoke("report", "--file", db_file).output

    invoke("start", "Writing", "--no-wait", "--file", db_file)
    invoke("finish", "Writing", "--file", db_file)

    daily = invoke("report", "--daily", "--from", "1", "--file", db_file)
    assert daily.exit_code == 0, daily.output
    assert ": 0:00\n" in daily.output

    dist = invoke("report", "--dist", "--all", "--from", "1", "--file", db_file)
    assert "Writing:" in dist.output

    html = invoke("report", "--detail", "--html", "--from", "1", "--file", db_file)
    assert "<h3>Writing</h3>" in html.output


def test_report_dist_lists_every_date_in_range(db_file):
    with open_store(db_file) as store:
        store.start("Writing", at(9))
        store.finish_latest("Writing", at(10))

    result = invoke(
        "report", "--dist", "--start", "2024-03-03", "--end", "2024-03-05", "--file", db_file
    )
    assert result.exit_code == 0, result.output
    assert result.output.startswith("2024-03-03:\n\t<idle>: 08:00 ~ 21:00, 13:00\n2024-03-04:\n")
    assert "\tWriting: " in result.output
    assert result.output.endswith("2024-03-05:\n\t<idle>: 08:00 ~ 21:00, 13:00\n")


def test_report_without_view_flag_is_daily_detail(db_file):
    with open_store(db_file) as store:
        store.start("Writing", at(9))
        store.finish_latest("Writing", at(10))

    result = invoke("report", "--start", "2024-03-01", "--end", "2024-03-07", "--file", db_file)
    assert "\tWriting: 1:00\n\t(Total): 1:00\n" in result.output


def test_report_rejects_bad_dates(db_file):
    result = invoke("report", "--start", "2024-03-02", "--end", "2024-03-01", "--file", db_file)
    assert result.exit_code == 1
    assert "day_end" in result.output


def test_latest_not_found(db_file):
    assert "(Not found)" in invoke("latest", "Nothing", "--file", db_file).output


def test_read_title_rejects_out_of_range_index(monkeypatch):
    monkeypatch.setattr("typer.prompt", lambda *args, **kwargs: "3")
    with pytest.raises(typer.BadParameter) as excinfo:
        read_title(["A", "B"])
    assert "Invalid index: 3." in str(excinfo.value)
