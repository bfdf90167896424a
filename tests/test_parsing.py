"""
Tests for pulling the brand-kit JSON out of a model reply and normalizing it.
"""

import json

import pytest

from brandkit_extractor.errors import AnalysisError
from brandkit_extractor.extraction.parsing import extract_json_object, normalize_analysis, parse_ai_response
from brandkit_extractor.models import PAD_COLOR, BrandKit

from conftest import ai_reply


class TestExtractJsonObject:
    def test_surrounding_prose_and_fences(self):
        text = 'Sure!\n```json\n{"a": {"b": 1}}\n```\nAnything else?'
        assert extract_json_object(text) == '{"a": {"b": 1}}'

    def test_first_top_level_object_only(self):
        assert extract_json_object('{"a": 1} and then {"b": 2}') == '{"a": 1}'

    def test_braces_inside_strings_ignored(self):
        text = '{"tagline": "curly } braces { inside", "q": "say \\"hi\\" }"}'
        assert json.loads(extract_json_object(text))["tagline"] == "curly } braces { inside"

    def test_no_object(self):
        assert extract_json_object("I could not analyze this page.") is None

    def test_unbalanced(self):
        assert extract_json_object('{"a": {"b": 1}') is None


class TestParseAiResponse:
    def test_no_json_is_hard_failure(self):
        with pytest.raises(AnalysisError) as exc_info:
            parse_ai_response("Sorry, I cannot help with that.")
        assert exc_info.value.message == "No valid JSON in AI response"
        assert exc_info.value.status_code == 500

    def test_empty_reply(self):
        with pytest.raises(AnalysisError):
            parse_ai_response(None)

    def test_malformed_json_is_hard_failure(self):
        with pytest.raises(AnalysisError) as exc_info:
            parse_ai_response('{"brandIdentity": {"name": }}')
        assert "Malformed JSON" in exc_info.value.message


class TestNormalizeAnalysis:
    def parse(self, **overrides):
        return normalize_analysis(parse_ai_response(ai_reply(**overrides)))

    def test_internal_fields_never_reach_kit(self):
        parsed = self.parse()
        data = parsed.brand_kit.to_dict()

        assert "visualAreas" not in data
        assert "antiCrawlDetected" not in data
        assert [a.name for a in parsed.visual_areas] == ["Hero", "Features", "Footer"]
        assert parsed.anti_crawl is False

    @pytest.mark.parametrize(
        "colors, expected",
        [
            (["#111111", "#222222"], ["#111111", "#222222", PAD_COLOR, PAD_COLOR]),
            ([], [PAD_COLOR] * 4),
            (None, [PAD_COLOR] * 4),
            (["#1", "#2", "#3", "#4", "#5", "#6"], ["#1", "#2", "#3", "#4"]),
        ],
    )
    def test_colors_always_four(self, colors, expected):
        parsed = self.parse(visualSystem={"colors": colors, "typography": "Inter", "baseAppearance": "gradient"})
        assert parsed.brand_kit.visual_system.colors == expected

    def test_missing_visual_system(self):
        parsed = self.parse(visualSystem=None)
        assert parsed.brand_kit.visual_system.colors == [PAD_COLOR] * 4
        assert parsed.brand_kit.visual_system.base_appearance == "clean-minimal"

    def test_anti_crawl_empties_colors(self):
        parsed = self.parse(antiCrawlDetected=True)
        assert parsed.anti_crawl is True
        assert parsed.brand_kit.visual_system.colors == []

    def test_only_literal_true_counts_as_anti_crawl(self):
        assert self.parse(antiCrawlDetected="true").anti_crawl is False

    def test_single_tone_becomes_list(self):
        parsed = self.parse(brandContext={"overview": "x", "keywords": [], "tone": "Playful"})
        assert parsed.brand_kit.brand_context.tones == ["Playful"]

    def test_unknown_appearance_defaults(self):
        parsed = self.parse(visualSystem={"colors": [], "typography": "Lora", "baseAppearance": "brutalist"})
        assert parsed.brand_kit.visual_system.base_appearance == "clean-minimal"
        assert parsed.brand_kit.visual_system.typography == "Lora"

    def test_keywords_deduplicated_in_order(self):
        parsed = self.parse(brandContext={"overview": "", "keywords": ["b", "a", "b", " a "], "tones": []})
        assert parsed.brand_kit.brand_context.keywords == ["b", "a"]

    def test_model_supplied_images_ignored(self):
        parsed = self.parse(brandContext={"overview": "", "keywords": [], "tones": [], "images": ["x"]})
        assert parsed.brand_kit.brand_context.images == []

    def test_malformed_areas_skipped(self):
        parsed = self.parse(
            visualAreas=[
                "hero",
                {"name": "Bad", "yPercent": "top", "heightPercent": 10},
                {"name": "Zero", "yPercent": 10, "heightPercent": 0},
                {"name": "Ok", "yPercent": 10, "heightPercent": 10},
            ]
        )
        assert [a.name for a in parsed.visual_areas] == ["Ok"]

    def test_same_reply_normalizes_identically(self):
        first = json.dumps(self.parse().brand_kit.to_dict(), sort_keys=True)
        second = json.dumps(self.parse().brand_kit.to_dict(), sort_keys=True)
        assert first == second

    @pytest.mark.parametrize(
        "overrides",
        [
            {"brandIdentity": "Acme"},
            {"visualSystem": ["#ffffff"]},
            {"brandContext": "x"},
        ],
    )
    def test_non_object_section_is_analysis_error(self, overrides):
        with pytest.raises(AnalysisError) as exc_info:
            self.parse(**overrides)
        assert exc_info.value.message == "Malformed brand kit in AI response"
        assert exc_info.value.error == "Extraction failed"

    def test_single_tone_replaces_tones_list(self):
        parsed = self.parse(brandContext={"overview": "", "keywords": [], "tone": "Calm", "tones": ["Bold"]})
        assert parsed.brand_kit.brand_context.tones == ["Calm"]


class TestKitFromDict:
    def test_non_object_sections_fall_back_to_defaults(self):
        kit = BrandKit.from_dict({"brandIdentity": "Acme", "visualSystem": ["#fff"], "brandContext": 3})

        assert kit.brand_identity.name == ""
        assert kit.visual_system.base_appearance == "clean-minimal"
        assert kit.brand_context.keywords == []
