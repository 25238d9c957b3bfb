"""
Tests for the format-preserving JSON patcher.

Every expected document is spelled out in full: the point of the patcher is
that bytes outside the edited member do not move.
"""

from unittest.mock import patch

import pytest

from manage_prs.errors import AmbiguousIndentationError, MalformedOutputError, NotFoundError
from manage_prs.text_patcher import (
    EditRequest,
    Operation,
    append_unique,
    apply_edit,
    delete_key,
    detect_indent,
    get_value,
    has_path,
    list_items,
    locate_object,
    parse_document,
    patch_file,
    remove_matching,
    set_value,
    strip_comments,
)


# ============================================================================
# Parsing
# ============================================================================


class TestParseDocument:
    def test_comments_and_trailing_commas(self):
        text = '{"a": "//not a comment", /* note */ "b": [1, 2,], // end\n}'
        assert parse_document(text) == {"a": "//not a comment", "b": [1, 2]}

    def test_strip_comments_keeps_line_count(self):
        text = '{\n  // one\n  "a": 1\n}'
        assert strip_comments(text).count('\n') == text.count('\n')

    def test_byte_order_mark(self):
        assert parse_document('\ufeff{"a": 1}') == {"a": 1}

    def test_invalid_document_raises(self):
        with pytest.raises(MalformedOutputError):
            parse_document('{"a": }')


class TestLocate:
    DOC = '{\n    "common": {\n        "name": "x",\n        "tier": 2\n    }\n}\n'

    def test_get_value(self):
        assert get_value(self.DOC, ["common", "tier"]) == 2
        assert get_value(self.DOC, ["common"]) == {"name": "x", "tier": 2}

    def test_has_path(self):
        assert has_path(self.DOC, ["common", "name"])
        assert not has_path(self.DOC, ["common", "title"])
        assert not has_path(self.DOC, ["native", "name"])

    def test_missing_segment_raises(self):
        with pytest.raises(NotFoundError):
            get_value(self.DOC, ["common", "title"])

    def test_non_object_segment_raises(self):
        with pytest.raises(NotFoundError):
            locate_object(self.DOC, ["common", "name"])

    def test_braces_inside_strings(self):
        doc = '{"a": "}{\\"", "b": {"c": "]"}}'
        assert get_value(doc, ["b", "c"]) == "]"
        assert get_value(doc, ["a"]) == '}{"'


# ============================================================================
# Delete
# ============================================================================


class TestDeleteKey:
    def test_inline_middle_member(self):
        result = delete_key('{"a":1,"title":"x","b":2}', ["title"])
        assert result.changed
        assert result.text == '{"a":1,"b":2}'

    def test_inline_first_member(self):
        assert delete_key('{"a": 1, "b": 2}', ["a"]).text == '{"b": 2}'

    def test_inline_last_member_drops_previous_comma(self):
        assert delete_key('{"a":1,"b":2}', ["b"]).text == '{"a":1}'

    def test_line_member_removed_with_line_break(self):
        doc = '{\n    "a": 1,\n    "title": "x",\n    "b": 2\n}\n'
        assert delete_key(doc, ["title"]).text == '{\n    "a": 1,\n    "b": 2\n}\n'

    def test_last_line_member_drops_previous_comma(self):
        doc = '{\n    "a": 1,\n    "b": 2\n}\n'
        assert delete_key(doc, ["b"]).text == '{\n    "a": 1\n}\n'

    def test_only_member(self):
        assert delete_key('{\n    "a": 1\n}', ["a"]).text == '{\n}'

    def test_nested_member(self):
        doc = (
            '{\n'
            '  "common": {\n'
            '    "name": "test",\n'
            '    "title": "Old title",\n'
            '    "titleLang": {\n'
            '      "en": "Test"\n'
            '    }\n'
            '  },\n'
            '  "native": {}\n'
            '}\n'
        )
        expected = (
            '{\n'
            '  "common": {\n'
            '    "name": "test",\n'
            '    "titleLang": {\n'
            '      "en": "Test"\n'
            '    }\n'
            '  },\n'
            '  "native": {}\n'
            '}\n'
        )
        assert delete_key(doc, ["common", "title"]).text == expected

    def test_object_valued_member(self):
        doc = '{\n  "a": {\n    "x": [1, 2]\n  },\n  "b": 2\n}\n'
        assert delete_key(doc, ["a"]).text == '{\n  "b": 2\n}\n'

    def test_trailing_comment_goes_with_member(self):
        doc = '{\n    // the name\n    "name": "x",\n    "a": 1 // trailing\n}\n'
        assert delete_key(doc, ["a"]).text == '{\n    // the name\n    "name": "x"\n}\n'

    def test_crlf_line_endings(self):
        doc = '{\r\n  "a": 1,\r\n  "b": 2,\r\n  "c": 3\r\n}\r\n'
        assert delete_key(doc, ["b"]).text == '{\r\n  "a": 1,\r\n  "c": 3\r\n}\r\n'

    def test_byte_order_mark_kept(self):
        assert delete_key('\ufeff{"a": 1}', ["a"]).text == '\ufeff{}'

    def test_missing_member_raises(self):
        with pytest.raises(NotFoundError):
            delete_key('{"a": 1}', ["b"])

    def test_missing_parent_raises(self):
        with pytest.raises(NotFoundError):
            delete_key('{"a": 1}', ["common", "title"])


# ============================================================================
# Set
# ============================================================================


class TestSetValue:
    def test_replace_existing_value(self):
        doc = '{\n  "a": 1,\n  "b": 2\n}\n'
        assert set_value(doc, ["a"], 5).text == '{\n  "a": 5,\n  "b": 2\n}\n'

    def test_same_value_is_unchanged(self):
        doc = '{\n  "a": 1,\n  "b": 2\n}\n'
        result = set_value(doc, ["a"], 1)
        assert not result.changed
        assert result.text is doc

    @pytest.mark.parametrize("value", [1.0, True, "1"])
    def test_values_compare_strictly(self, value):
        assert set_value('{"a": 1}', ["a"], value).changed

    def test_insert_after_anchor(self):
        doc = (
            '{\n'
            '    "common": {\n'
            '        "name": "x",\n'
            '        "loglevel": "info",\n'
            '        "license": "MIT"\n'
            '    }\n'
            '}\n'
        )
        expected = (
            '{\n'
            '    "common": {\n'
            '        "name": "x",\n'
            '        "loglevel": "info",\n'
            '        "tier": 2,\n'
            '        "license": "MIT"\n'
            '    }\n'
            '}\n'
        )
        assert set_value(doc, ["common", "tier"], 2, after=["loglevel"]).text == expected

    def test_insert_after_last_member_moves_comma(self):
        doc = '{\n    "name": "x",\n    "license": "MIT"\n}\n'
        expected = '{\n    "name": "x",\n    "license": "MIT",\n    "tier": 2\n}\n'
        assert set_value(doc, ["tier"], 2, after=["license"]).text == expected

    def test_insert_before_anchor(self):
        doc = '{\n    "name": "x",\n    "license": "MIT"\n}\n'
        expected = '{\n    "name": "x",\n    "tier": 2,\n    "license": "MIT"\n}\n'
        result = set_value(doc, ["tier"], 2, after=["loglevel"], before=["license"])
        assert result.text == expected

    def test_insert_without_anchor_appends(self):
        doc = '{\n    "name": "x"\n}\n'
        assert set_value(doc, ["tier"], 2, after=["nothing"]).text == '{\n    "name": "x",\n    "tier": 2\n}\n'

    @pytest.mark.parametrize("unit", ["\t", "  ", "    "])
    def test_indentation_follows_document(self, unit):
        doc = '{\n' + unit + '"common": {\n' + unit * 2 + '"name": "x"\n' + unit + '}\n}\n'
        expected = (
            '{\n'
            + unit + '"common": {\n'
            + unit * 2 + '"name": "x",\n'
            + unit * 2 + '"licenseInformation": {\n'
            + unit * 3 + '"type": "free",\n'
            + unit * 3 + '"license": "MIT"\n'
            + unit * 2 + '}\n'
            + unit + '}\n'
            '}\n'
        )
        value = {"type": "free", "license": "MIT"}
        assert set_value(doc, ["common", "licenseInformation"], value).text == expected

    def test_insert_into_empty_object(self):
        doc = '{\n    "common": {}\n}\n'
        expected = '{\n    "common": {\n        "tier": 2\n    }\n}\n'
        assert set_value(doc, ["common", "tier"], 2).text == expected

    def test_single_line_object(self):
        assert set_value('{"a": 1, "b": 2}', ["c"], 3).text == '{"a": 1, "b": 2, "c": 3}'

    def test_crlf_insert(self):
        doc = '{\r\n    "a": 1\r\n}\r\n'
        assert set_value(doc, ["b"], 2).text == '{\r\n    "a": 1,\r\n    "b": 2\r\n}\r\n'

    def test_insert_after_member_with_trailing_comment(self):
        doc = '{\n    "a": 1,\n    "b": 2 // note\n}\n'
        expected = '{\n    "a": 1,\n    "b": 2, // note\n    "c": 3\n}\n'
        assert set_value(doc, ["c"], 3).text == expected

    def test_insert_after_member_with_trailing_block_comment(self):
        doc = '{\n    "b": 2 /* note */\n}\n'
        assert set_value(doc, ["c"], 3).text == '{\n    "b": 2, /* note */\n    "c": 3\n}\n'

        assert set_value(doc, ["b"], 2).text == '{\r\n    "a": 1,\r\n    "b": 2\r\n}\r\n'

    def test_idempotent(self):
        doc = '{\n    "name": "x"\n}\n'
        first = set_value(doc, ["tier"], 3)
        second = set_value(first.text, ["tier"], 3)
        assert first.changed
        assert not second.changed
        assert second.text == first.text

    def test_mixed_indentation_raises(self):
        doc = '{\n\t"a": 1,\n    "b": 2\n}'
        with pytest.raises(AmbiguousIndentationError):
            set_value(doc, ["c"], 3)

    def test_missing_parent_raises(self):
        with pytest.raises(NotFoundError):
            set_value('{"a": 1}', ["common", "tier"], 2)


class TestDetectIndent:
    def test_from_members(self):
        doc = '{\n  "a": {\n      "b": 1\n  }\n}'
        obj = locate_object(doc, ["a"])
        assert detect_indent(doc, obj) == ("      ", "    ")

    def test_sampled_from_document(self):
        doc = '{\n\t"a": {}\n}'
        obj = locate_object(doc, ["a"])
        assert detect_indent(doc, obj) == ("\t\t", "\t")


# ============================================================================
# Arrays
# ============================================================================


class TestArrays:
    DOC = '{\n  "keywords": [\n    "a",\n    "b"\n  ]\n}\n'

    def test_list_items(self):
        assert list_items(self.DOC, ["keywords"]) == ["a", "b"]

    def test_append_unique_at_front(self):
        expected = '{\n  "keywords": [\n    "ioBroker",\n    "a",\n    "b"\n  ]\n}\n'
        assert append_unique(self.DOC, ["keywords"], "ioBroker", index=0).text == expected

    def test_append_unique_present_is_unchanged(self):
        result = append_unique(self.DOC, ["keywords"], "a")
        assert not result.changed
        assert result.text is self.DOC

    def test_append_unique_is_case_sensitive(self):
        assert append_unique(self.DOC, ["keywords"], "A").changed

    def test_append_single_line_array(self):
        doc = '{"keywords": ["a", "b"]}'
        assert append_unique(doc, ["keywords"], "c").text == '{"keywords": ["a", "b", "c"]}'

    def test_remove_matching(self):
        doc = '{\n  "keywords": [\n    "adapter",\n    "weather",\n    "Smart Home"\n  ]\n}\n'
        expected = '{\n  "keywords": [\n    "weather"\n  ]\n}\n'
        result = remove_matching(doc, ["keywords"], lambda k: k.lower() in ("adapter", "smart home"))
        assert result.text == expected

    def test_remove_all_items(self):
        result = remove_matching(self.DOC, ["keywords"], lambda k: True)
        assert result.text == '{\n  "keywords": []\n}\n'

    def test_remove_nothing_is_unchanged(self):
        assert not remove_matching(self.DOC, ["keywords"], lambda k: False).changed

    def test_non_array_raises(self):
        with pytest.raises(NotFoundError):
            append_unique('{"keywords": "x"}', ["keywords"], "y")

    def test_remove_last_item_keeps_comment_of_previous(self):
        doc = '{"keywords": [\n "a", // keep me\n "iobroker"\n]}'
        result = remove_matching(doc, ["keywords"], lambda k: k == "iobroker")
        assert result.text == '{"keywords": [\n "a" // keep me\n]}'

    def test_remove_keeps_comments(self):
        doc = (
            '{\n  "keywords": [\n'
            '    // generic terms\n'
            '    "adapter",\n'
            '    "weather", // main\n'
            '    "Smart Home"\n'
            '  ]\n}\n'
        )
        expected = '{\n  "keywords": [\n    // generic terms\n    "weather" // main\n  ]\n}\n'
        result = remove_matching(doc, ["keywords"], lambda k: k.lower() in ("adapter", "smart home"))
        assert result.text == expected

    def test_append_keeps_comments(self):
        doc = '{\n  "keywords": [\n    "weather" // forecast\n  ]\n}\n'
        front = '{\n  "keywords": [\n    "ioBroker",\n    "weather" // forecast\n  ]\n}\n'
        back = '{\n  "keywords": [\n    "weather", // forecast\n    "rain"\n  ]\n}\n'
        assert append_unique(doc, ["keywords"], "ioBroker", index=0).text == front
        assert append_unique(doc, ["keywords"], "rain").text == back

    def test_append_to_empty_array_with_comment(self):
        doc = '{\n  "keywords": [ /* none yet */ ]\n}\n'
        result = append_unique(doc, ["keywords"], "ioBroker")
        assert parse_document(result.text) == {"keywords": ["ioBroker"]}
        assert "/* none yet */" in result.text



class TestApplyEdit:
    def test_dispatches_operations(self):
        doc = '{"a": 1, "k": ["x"]}'
        assert apply_edit(EditRequest(doc, ["a"], Operation.DELETE)).text == '{"k": ["x"]}'
        assert apply_edit(EditRequest(doc, ["a"], Operation.SET, value=2)).text == '{"a": 2, "k": ["x"]}'
        request = EditRequest(doc, ["k"], Operation.APPEND_UNIQUE, value="y")
        assert apply_edit(request).text == '{"a": 1, "k": ["x", "y"]}'
        request = EditRequest(doc, ["k"], Operation.REMOVE_MATCHING, predicate=lambda v: v == "x")
        assert apply_edit(request).text == '{"a": 1, "k": []}'

    def test_remove_matching_requires_predicate(self):
        with pytest.raises(ValueError):
            apply_edit(EditRequest('{"k": []}', ["k"], Operation.REMOVE_MATCHING))


# ============================================================================
# Files
# ============================================================================


class TestPatchFile:
    def test_applies_edits_in_order(self, repo_dir):
        path = repo_dir.write("io-package.json", '{\n  "a": 1,\n  "b": 2\n}\n')
        changed = patch_file(
            path,
            lambda text: delete_key(text, ["a"]),
            lambda text: set_value(text, ["c"], 3)
        )
        assert changed
        assert repo_dir.read("io-package.json") == '{\n  "b": 2,\n  "c": 3\n}\n'

    def test_no_change_writes_nothing(self, repo_dir):
        path = repo_dir.write("io-package.json", '{"a": 1}')
        with patch("manage_prs.text_patcher.write_document") as write:
            assert not patch_file(path, lambda text: set_value(text, ["a"], 1))
        write.assert_not_called()

    def test_failed_edit_leaves_file_untouched(self, repo_dir):
        path = repo_dir.write("io-package.json", '{"a": 1}')
        with pytest.raises(NotFoundError):
            patch_file(
                path,
                lambda text: set_value(text, ["b"], 2),
                lambda text: delete_key(text, ["missing"])
            )
        assert repo_dir.read("io-package.json") == '{"a": 1}'

    def test_rejected_output_is_not_written(self, repo_dir):
        path = repo_dir.write("io-package.json", '{"a": 1}')

        def reject(text):
            raise ValueError("nope")

        with pytest.raises(MalformedOutputError):
            patch_file(path, lambda text: set_value(text, ["a"], 2), validate=reject)
        assert repo_dir.read("io-package.json") == '{"a": 1}'
