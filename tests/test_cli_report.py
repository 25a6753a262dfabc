import pytest
import typer

from cosmosops.cli.commands.cosmos import _report_clear
from cosmosops.core.clear import ClearReport, ContainerClearResult, ItemDeleteResult


def _report(*items: ItemDeleteResult, error: str | None = None) -> ClearReport:
    return ClearReport(
        target_id="db",
        containers=[
            ContainerClearResult(
                container_id="db/containers/c", display_name="c", items=items, error=error
            )
        ],
    )


def test_declined_clear_exits_zero():
    with pytest.raises(typer.Exit) as exc:
        _report_clear(None)
    assert exc.value.exit_code == 0


def test_successful_clear_returns_normally():
    _report_clear(_report(ItemDeleteResult("db/containers/c", "1", deleted=True)))


def test_failed_delete_exits_one():
    report = _report(
        ItemDeleteResult("db/containers/c", "1", deleted=True),
        ItemDeleteResult("db/containers/c", "2", deleted=False, error="boom"),
    )
    with pytest.raises(typer.Exit) as exc:
        _report_clear(report)
    assert exc.value.exit_code == 1


def test_enumeration_failure_exits_one():
    with pytest.raises(typer.Exit) as exc:
        _report_clear(_report(error="503"))
    assert exc.value.exit_code == 1
