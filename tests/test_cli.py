"""
Tests for the command-line entry points that do not need a model backend.
"""

import json
from unittest.mock import Mock, patch

import pytest
from docx import Document

from cli.main import build_parser, main
from conftest import criteria_schema
from configs.settings import settings


@pytest.fixture
def workdirs(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "_schemas_dir", tmp_path / "schemas")
    monkeypatch.setattr(settings, "_templates_dir", tmp_path / "templates")
    monkeypatch.setattr(settings, "_output_dir", tmp_path / "output")
    (tmp_path / "schemas").mkdir()
    (tmp_path / "templates").mkdir()
    return tmp_path


def test_curricula_lists_defaults(capsys):
    assert main(["curricula"]) == 0

    out = capsys.readouterr().out
    assert "CHC33021" in out
    assert "benchmark_answer" in out


def test_parser_requires_student():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["generate", "CHC33021", "transcript.txt"])


def test_cancel_posts_generation_id():
    fake_response = Mock(status_code=200, text='{"ok":true,"message":"Canceled"}')
    with patch("cli.main.httpx.request", return_value=fake_response) as request:
        code = main(["cancel", "gen-42", "--url", "http://server:9000/"])

    assert code == 0
    request.assert_called_once_with(
        "DELETE", "http://server:9000/api/generate", json={"generationId": "gen-42"}
    )


def test_fill_doc(workdirs, capsys):
    (workdirs / "schemas" / "CHC33021.json").write_text(
        json.dumps(criteria_schema({"CHCCCS038": 1})), encoding="utf-8"
    )
    template = Document()
    template.add_paragraph("{{Student_Name}}: {{CHCCCS038_1}}")
    template.save(str(workdirs / "templates" / "blank_form-CHC33021.docx"))

    answers = workdirs / "results.json"
    answers.write_text(
        json.dumps({"CHCCCS038": {"1": {"evaluation": {}, "conclusion": "Competent"}}}),
        encoding="utf-8",
    )

    code = main(["fill-doc", "CHC33021", "--student", "Alex Morgan", str(answers)])

    assert code == 0
    rendered = Document(str(workdirs / "output" / "Alex Morgan_CHC33021.docx"))
    assert rendered.paragraphs[0].text == "Alex Morgan: Conclusion\nCompetent"
    assert "document written" in capsys.readouterr().out
