"""
Widget Embed -- CLI Tests

Covers argument parsing, the validate report, and render/validate
end to end through main() on a file on disk.
"""

import json
import sys

import pytest

from widget_embed import cli
from widget_embed.types import STATE_MIME_TYPE, VIEW_MIME_TYPE

STATE = {
    "version_major": 2,
    "version_minor": 0,
    "state": {
        "label": {
            "model_name": "LabelModel",
            "model_module": "@jupyter-widgets/controls",
            "state": {"value": "hello"},
        }
    },
}

PAGE = (
    "<html><body>"
    f'<script type="{STATE_MIME_TYPE}">{json.dumps(STATE)}</script>'
    '<img class="jupyter-widget">'
    f'<script type="{VIEW_MIME_TYPE}">{{"model_id": "label"}}</script>'
    "</body></html>"
)


def run_main(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["widget-embed", *argv])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    return exc.value.code


# ============================================================================
# parse_args
# ============================================================================


class TestParseArgs:
    def test_render_with_options(self):
        args = cli.parse_args(["render", "page.html", "-o", "out.html", "--no-validate", "--log-level", "debug"])
        assert args["command"] == "render"
        assert args["source"] == "page.html"
        assert args["output"] == "out.html"
        assert args["validate"] is False
        assert args["log_level"] == "DEBUG"

    def test_defaults(self):
        args = cli.parse_args(["validate", "page.html"])
        assert args["command"] == "validate"
        assert args["output"] is None
        assert args["validate"] is True
        assert args["show_help"] is False

    def test_help_and_version(self):
        assert cli.parse_args(["--help"])["show_help"] is True
        assert cli.parse_args(["-v"])["show_version"] is True

    def test_unknown_option_exits(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["render", "page.html", "--fast"])

    def test_missing_output_path_exits(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["render", "page.html", "-o"])


# ============================================================================
# validate
# ============================================================================


class TestValidate:
    def test_clean_page(self, capsys):
        assert cli.run_validate(PAGE) == 0
        out = capsys.readouterr().out
        assert "state marker #1: ok" in out
        assert "view marker #1: ok" in out

    def test_problems_counted(self, capsys):
        page = (
            f'<script type="{STATE_MIME_TYPE}">{{"m": {{"model_name": "X", "model_module": "y"}}}}</script>'
            f'<script type="{VIEW_MIME_TYPE}">not json</script>'
        )
        assert cli.run_validate(page) == 2
        out = capsys.readouterr().out
        assert "state marker #1: /m:" in out
        assert "view marker #1: unparseable" in out


# ============================================================================
# main
# ============================================================================


class TestMain:
    def test_render_to_file(self, monkeypatch, tmp_path):
        source = tmp_path / "page.html"
        target = tmp_path / "out.html"
        source.write_text(PAGE, encoding="utf-8")

        assert run_main(monkeypatch, "render", str(source), "-o", str(target)) == 0

        rendered = target.read_text(encoding="utf-8")
        assert 'class="widget-label">hello</div>' in rendered
        assert "jupyter-widget\"" not in rendered

    def test_validate_exit_code(self, monkeypatch, tmp_path, capsys):
        source = tmp_path / "page.html"
        source.write_text(PAGE.replace('"model_id": "label"', '"model_id": 1'), encoding="utf-8")

        assert run_main(monkeypatch, "validate", str(source)) == 1
        assert "/model_id" in capsys.readouterr().out

    def test_missing_file(self, monkeypatch, tmp_path, capsys):
        assert run_main(monkeypatch, "render", str(tmp_path / "nope.html")) == 1
        assert "could not read" in capsys.readouterr().out

    def test_no_command_prints_help(self, monkeypatch, capsys):
        assert run_main(monkeypatch) == 1
        assert "Usage:" in capsys.readouterr().out

    def test_undecodable_file(self, monkeypatch, tmp_path, capsys):
        source = tmp_path / "latin1.html"
        source.write_bytes(b"<p>\xff\xfe caf\xe9</p>")

        assert run_main(monkeypatch, "validate", str(source)) == 1
        assert "could not read" in capsys.readouterr().out
