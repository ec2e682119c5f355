from typer.testing import CliRunner

from mutual_aid.cli import app
from mutual_aid.config.settings import settings

runner = CliRunner()


def test_serve_binds_configured_host_and_port(mocker):
    run = mocker.patch("mutual_aid.cli.uvicorn.run")

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 0
    run.assert_called_once_with(
        "mutual_aid.api.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=False
    )


def test_serve_options_override_settings(mocker):
    run = mocker.patch("mutual_aid.cli.uvicorn.run")

    result = runner.invoke(app, ["serve", "--host", "127.0.0.1", "--port", "8080", "--reload"])

    assert result.exit_code == 0
    run.assert_called_once_with("mutual_aid.api.main:app", host="127.0.0.1", port=8080, reload=True)
