from __future__ import annotations

import json
from pathlib import Path

import pytest

from jamakforge.generator import (
    GenerationConfig,
    SubtitleGenerator,
    generate_subtitles,
    load_sections,
    run_generation,
)
from jamakforge.models import Section
from jamakforge.settings import AppSettings


def test_single_section_fills_its_duration() -> None:
    entries = SubtitleGenerator(AppSettings()).generate([Section("첫 번째 자막", 10)], "ko")
    assert len(entries) == 1
    assert (entries[0].id, entries[0].start, entries[0].end) == ("1", 0.0, 10.0)


def test_sections_are_offset_and_ids_are_global() -> None:
    entries = generate_subtitles(
        [
            {"text": "첫 문장입니다. 두 번째 문장입니다.", "duration": 6},
            {"text": "세 번째 문장입니다.", "durationSeconds": 3},
        ],
        language="ko",
        app_settings=AppSettings(),
    )
    assert [entry.id for entry in entries] == ["1", "2", "3"]
    assert entries[1].end == pytest.approx(6.0)
    assert entries[2].start == pytest.approx(6.1)
    assert entries[2].end == pytest.approx(9.1)
    for previous, current in zip(entries, entries[1:]):
        assert previous.end <= current.start


def test_korean_chunks_get_particles_fixed() -> None:
    generator = SubtitleGenerator(AppSettings())
    ko = generator.generate([Section("코드을 작성합니다.", 3)], "ko")
    en = generator.generate([Section("코드을 작성합니다.", 3)], "en")
    assert ko[0].text == "코드를 작성합니다."
    assert en[0].text == "코드을 작성합니다."


def test_korean_nouns_ending_like_particles_survive_generation() -> None:
    entries = generate_subtitles([{"text": "전문가 평가 결과입니다.", "duration": 3}], "ko", app_settings=AppSettings())
    assert entries[0].text == "전문가 평가 결과입니다."

    entries = generate_subtitles([{"text": "국가 물가 치과 경로", "duration": 3}], "ko", app_settings=AppSettings())
    assert entries[0].text == "국가 물가 치과 경로"


def test_line_limits_are_applied() -> None:
    text = "하나 둘 셋 넷 다섯 여섯 일곱 여덟"
    entries = SubtitleGenerator(AppSettings()).generate([Section(text, 8)], "ko", max_chars_per_line=5, max_lines=2)
    assert [entry.text for entry in entries] == ["하나 둘 셋 넷", "다섯 여섯 일곱 여덟"]


def test_keywords_are_extracted() -> None:
    entries = SubtitleGenerator(AppSettings()).generate([Section("React를 배웁니다.", 3)], "ko")
    assert entries[0].keywords == ("React",)


def test_build_timeline_uses_editor_settings() -> None:
    settings = AppSettings()
    settings.editor.cascade = True
    settings.editor.history_limit = 3
    timeline = SubtitleGenerator(settings).build_timeline([Section("안녕하세요.", 2)], language="ko")
    assert timeline.cascade is True
    assert timeline.history.limit == 3
    assert len(timeline) == 1


def test_load_sections_from_yaml_and_json(tmp_path: Path) -> None:
    yaml_path = tmp_path / "script.yaml"
    yaml_path.write_text(
        """
language: en
sections:
  - text: Hello there.
    duration: 2.5
""".strip(),
        encoding="utf-8",
    )
    document = load_sections(yaml_path)
    assert document.language == "en"
    assert document.sections == [Section("Hello there.", 2.5)]

    json_path = tmp_path / "script.json"
    json_path.write_text(json.dumps([{"content": "안녕", "durationSeconds": 1}]), encoding="utf-8")
    assert load_sections(json_path).sections == [Section("안녕", 1.0)]

    bad = tmp_path / "bad.yaml"
    bad.write_text("just text", encoding="utf-8")
    with pytest.raises(ValueError):
        load_sections(bad)


def test_run_generation_writes_file_and_logs(tmp_path: Path) -> None:
    sections = tmp_path / "episode.yaml"
    sections.write_text(
        """
sections:
  - text: 첫 번째 자막. 두 번째 자막.
    duration: 10
""".strip(),
        encoding="utf-8",
    )
    logs = tmp_path / "logs"
    result = run_generation(GenerationConfig(sections_path=sections, logs_dir=logs, settings=AppSettings()))

    assert result.output_path == sections.with_suffix(".srt").resolve()
    assert result.output_path.read_text(encoding="utf-8").startswith("1\n00:00:00,000 --> ")
    assert len(result.entries) == 2
    assert result.warnings == []
    run_log = (logs / f"{result.run_id}.log").read_text(encoding="utf8")
    assert "START Generate subtitles" in run_log
    assert "completed" in (logs / "jamakforge.log").read_text(encoding="utf8")


def test_run_generation_skips_empty_documents(tmp_path: Path) -> None:
    sections = tmp_path / "empty.yaml"
    sections.write_text("sections: []\n", encoding="utf-8")
    result = run_generation(
        GenerationConfig(sections_path=sections, output_path=tmp_path / "x.vtt", logs_dir=tmp_path / "logs", settings=AppSettings())
    )
    assert result.output_path is None
    assert not (tmp_path / "x.vtt").exists()
