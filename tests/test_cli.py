"""End-to-end tests for the routelens CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from routelens.app import app


FASTAPI_PROJECT = {
    "requirements.txt": "fastapi==0.110\nuvicorn\n",
    "main.py": """
        from fastapi import FastAPI
        from pydantic import BaseModel

        app = FastAPI()


        class Item(BaseModel):
            name: str
            price: float = 0.0


        @app.get("/items/{item_id}")
        def read_item(item_id: int):
            return {"item_id": item_id}


        @app.post("/items")
        def create_item(item: Item):
            return item
        """,
}

FLASK_MODULE = {
    "server.py": """
        from flask import Flask

        app = Flask(__name__)


        @app.route("/ping")
        def ping():
            return "pong"
        """,
}


@pytest.fixture
def fastapi_project(isolated_config: Path, write_project) -> Path:
    return write_project(FASTAPI_PROJECT)


class TestRootCommand:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.startswith("routelens ")

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "scan" in result.output


class TestFrameworksCommand:
    def test_lists_builtin_adapters(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["frameworks"])
        assert result.exit_code == 0
        names = [line.split("\t")[0] for line in result.stdout.splitlines()[1:]]
        assert "fastapi" in names
        assert "phoenix" in names


class TestDetectCommand:
    def test_detects_fastapi(self, cli_runner, fastapi_project: Path) -> None:
        result = cli_runner.invoke(app, ["detect", str(fastapi_project)])
        assert result.exit_code == 0
        assert "fastapi" in result.stdout

    def test_nothing_detected(self, cli_runner, isolated_config: Path, write_project) -> None:
        root = write_project({"README.md": "hello\n"})
        result = cli_runner.invoke(app, ["detect", str(root)])
        assert result.exit_code == 4

    def test_missing_directory(self, cli_runner, isolated_config: Path, tmp_path: Path) -> None:
        result = cli_runner.invoke(app, ["detect", str(tmp_path / "nope")])
        assert result.exit_code == 2


class TestScanCommand:
    def test_json_to_stdout(self, cli_runner, fastapi_project: Path) -> None:
        result = cli_runner.invoke(app, ["scan", str(fastapi_project), "--format", "json"])
        assert result.exit_code == 0
        document = json.loads(result.stdout)
        assert document["openapi"] == "3.0.3"
        assert set(document["paths"]) == {"/items/{item_id}", "/items"}
        assert "Item" in document["components"]["schemas"]

    def test_yaml_to_file(self, cli_runner, fastapi_project: Path, tmp_path: Path) -> None:
        target = tmp_path / "out" / "openapi.yaml"
        result = cli_runner.invoke(
            app, ["scan", str(fastapi_project), "--format", "yaml", "-o", str(target)]
        )
        assert result.exit_code == 0
        document = yaml.safe_load(target.read_text(encoding="utf-8"))
        assert "get" in document["paths"]["/items/{item_id}"]

    def test_table_output(self, cli_runner, fastapi_project: Path) -> None:
        result = cli_runner.invoke(app, ["scan", str(fastapi_project), "--format", "table"])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert lines[0] == "Method\tPath\tHandler\tSource"
        assert any(line.startswith("GET\t/items/{item_id}\tread_item") for line in lines)

    def test_table_with_output_file_is_rejected(self, cli_runner, fastapi_project: Path, tmp_path: Path) -> None:
        result = cli_runner.invoke(
            app, ["scan", str(fastapi_project), "--format", "table", "-o", str(tmp_path / "x.txt")]
        )
        assert result.exit_code == 2
        assert not (tmp_path / "x.txt").exists()

    def test_unknown_format(self, cli_runner, fastapi_project: Path) -> None:
        result = cli_runner.invoke(app, ["scan", str(fastapi_project), "--format", "xml"])
        assert result.exit_code == 2

    def test_forced_framework_skips_detection(self, cli_runner, isolated_config: Path, write_project) -> None:
        root = write_project(FLASK_MODULE)
        result = cli_runner.invoke(app, ["scan", str(root), "-f", "flask"])
        assert result.exit_code == 0
        assert list(json.loads(result.stdout)["paths"]) == ["/ping"]

    def test_format_from_environment(self, cli_runner, fastapi_project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROUTELENS_FORMAT", "yaml")
        result = cli_runner.invoke(app, ["scan", str(fastapi_project)])
        assert result.exit_code == 0
        assert yaml.safe_load(result.stdout)["openapi"] == "3.0.3"

    def test_nothing_detected(self, cli_runner, isolated_config: Path, write_project) -> None:
        root = write_project({"main.py": "print('hi')\n"})
        result = cli_runner.invoke(app, ["scan", str(root)])
        assert result.exit_code == 4

    def test_missing_directory(self, cli_runner, isolated_config: Path, tmp_path: Path) -> None:
        result = cli_runner.invoke(app, ["scan", str(tmp_path / "nope")])
        assert result.exit_code == 2
