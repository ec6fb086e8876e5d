#!/usr/bin/env python3
"""
Unit tests for charset scoring, detection, conversion and normalization
"""

import pytest

from core.charset import (
    ERROR_CANDIDATES,
    UNKNOWN,
    CharsetSettings,
    best_effort_convert,
    contains_cjk,
    convert_string,
    convert_with_candidates,
    detect_encoding,
    is_valid_utf8,
    normalize_error,
    normalize_rows,
    prepare_outbound,
    same_charset,
    score_text,
)

CHINESE = '中文'
GBK_BYTES = CHINESE.encode('gbk')


def as_text(raw: bytes) -> str:
    """What a surrogateescape-decoding driver hands over for ``raw``."""
    return raw.decode('utf-8', 'surrogateescape')


@pytest.mark.unit
class TestScoreText:

    def test_cjk_beats_garbage(self):
        assert score_text('你好') > score_text('??')
        assert score_text('你好') > score_text('??好')

    def test_values(self):
        assert score_text('你好') == 4
        assert score_text('??') == -2
        assert score_text('a�b') == -1
        assert score_text('plain ascii') == 0
        assert score_text(None) == 0

    def test_order_does_not_matter(self):
        assert score_text('你?好') == score_text('你好?')

    def test_undecoded_bytes_earn_nothing(self):
        assert score_text(as_text(GBK_BYTES)) == 0
        assert score_text(GBK_BYTES) == 0

    def test_bytes_input(self):
        assert score_text(CHINESE.encode('utf-8')) == 4
        assert score_text(b'??') == -2


@pytest.mark.unit
class TestDetectEncoding:

    def test_utf8_short_circuits(self):
        assert detect_encoding('hello', ['GBK']) == 'UTF-8'
        assert detect_encoding(CHINESE.encode('utf-8'), ['GBK', 'ISO-8859-1']) == 'UTF-8'

    def test_first_valid_candidate_in_order(self):
        assert detect_encoding(GBK_BYTES, ['GBK', 'ISO-8859-1']) == 'GBK'
        assert detect_encoding(GBK_BYTES, ['ISO-8859-1', 'GBK']) == 'ISO-8859-1'

    def test_surrogate_text_is_detected_from_its_bytes(self):
        assert detect_encoding(as_text(GBK_BYTES), ['GBK']) == 'GBK'

    def test_unknown_when_nothing_validates(self):
        assert detect_encoding(b'\xff', ['GBK']) == UNKNOWN
        assert detect_encoding(b'\xff', []) == UNKNOWN

    def test_unknown_labels_are_skipped(self):
        assert detect_encoding(GBK_BYTES, ['NO-SUCH-CHARSET', 'GBK']) == 'GBK'


@pytest.mark.unit
class TestConvertString:

    def test_identity_for_equal_labels(self):
        value = as_text(GBK_BYTES)
        assert convert_string(value, 'gbk', 'GBK') is value
        assert convert_string('abc', 'UTF-8', 'utf-8') == 'abc'

    def test_identity_for_empty_labels(self):
        assert convert_string('abc', '', 'UTF-8') == 'abc'
        assert convert_string('abc', 'GBK', '') == 'abc'
        assert convert_string('abc', None, None) == 'abc'

    def test_gbk_to_utf8(self):
        assert convert_string(as_text(GBK_BYTES), 'GBK', 'UTF-8') == CHINESE
        assert convert_string(GBK_BYTES, 'GBK', 'UTF-8') == CHINESE.encode('utf-8')

    def test_utf8_to_gbk_keeps_type(self):
        converted = convert_string(CHINESE, 'UTF-8', 'GBK')
        assert isinstance(converted, str)
        assert converted.encode('utf-8', 'surrogateescape') == GBK_BYTES

    def test_unmappable_characters_are_substituted(self):
        converted = convert_string('snow ☃', 'UTF-8', 'ISO-8859-1')
        assert converted == 'snow ?'

    def test_unknown_codec_is_identity(self):
        assert convert_string('abc', 'NO-SUCH-CHARSET', 'UTF-8') == 'abc'

    def test_non_text_passes_through(self):
        assert convert_string(None, 'GBK', 'UTF-8') is None
        assert convert_string(42, 'GBK', 'UTF-8') == 42

    def test_same_charset(self):
        assert same_charset('utf-8', 'UTF-8')
        assert not same_charset('GBK', 'UTF-8')


@pytest.mark.unit
class TestCandidateConversion:

    def test_repairs_mojibake(self):
        assert convert_with_candidates(as_text(GBK_BYTES), ['UTF-8', 'GBK'], 'UTF-8') == CHINESE

    def test_never_scores_below_original(self):
        for original in ('你好', '??', 'plain', as_text(GBK_BYTES)):
            result = convert_with_candidates(original, list(ERROR_CANDIDATES), 'UTF-8')
            assert score_text(result) >= score_text(original)

    def test_ties_keep_the_original(self):
        assert convert_with_candidates('plain', ['GBK', 'ISO-8859-1'], 'UTF-8') == 'plain'

    def test_best_effort_trusts_detection(self):
        assert best_effort_convert(as_text(GBK_BYTES), ['GBK'], 'UTF-8') == CHINESE
        assert best_effort_convert('plain', ['GBK'], 'UTF-8') == 'plain'

    def test_best_effort_falls_back_to_first_change(self):
        assert best_effort_convert(b'\xff', ['GBK'], 'UTF-8') == '�'.encode('utf-8')


@pytest.mark.unit
class TestNormalizeRows:

    def test_walks_nested_values(self):
        mojibake = as_text(GBK_BYTES)
        rows = [{
            'name': mojibake,
            'count': 3,
            'payload': GBK_BYTES,
            'missing': None,
            'empty': '',
            'nested': {'inner': mojibake},
            'items': [mojibake, 1],
        }]
        result = normalize_rows(rows, 'GBK', 'UTF-8')

        assert result is rows
        row = rows[0]
        assert row['name'] == CHINESE
        assert row['count'] == 3
        assert row['payload'] == GBK_BYTES
        assert row['missing'] is None
        assert row['empty'] == ''
        assert row['nested']['inner'] == CHINESE
        assert row['items'] == [CHINESE, 1]

    def test_noop_when_labels_match_or_are_unset(self):
        mojibake = as_text(GBK_BYTES)
        rows = [{'name': mojibake}]
        normalize_rows(rows, 'UTF-8', 'utf-8')
        normalize_rows(rows, '', 'UTF-8')
        assert rows[0]['name'] == mojibake

    def test_tuple_rows_are_rebuilt(self):
        rows = [(as_text(GBK_BYTES), 1)]
        normalize_rows(rows, 'GBK', 'UTF-8')
        assert rows == [(CHINESE, 1)]


@pytest.mark.unit
class TestPrepareOutbound:

    def test_converts_to_data_charset(self):
        prepared = prepare_outbound(CHINESE, 'UTF-8', 'GBK')
        assert prepared.encode('utf-8', 'surrogateescape') == GBK_BYTES

    def test_none_and_noop(self):
        assert prepare_outbound(None, 'UTF-8', 'GBK') is None
        assert prepare_outbound('abc', 'UTF-8', '') == 'abc'
        assert prepare_outbound('abc', 'UTF-8', 'utf-8') == 'abc'


@pytest.mark.unit
class TestNormalizeError:

    MESSAGE = '表不存在'

    def test_trusts_utf8_with_cjk(self):
        assert normalize_error(self.MESSAGE, 'GBK', 'GBK', 'UTF-8') == self.MESSAGE

    def test_configured_error_charset(self):
        garbled = as_text(self.MESSAGE.encode('gbk'))
        assert normalize_error(garbled, error_charset='GBK') == self.MESSAGE

    def test_data_charset_is_the_fallback_source(self):
        garbled = as_text(self.MESSAGE.encode('gbk'))
        assert normalize_error(garbled, data_charset='GB18030') == self.MESSAGE

    def test_candidate_scan_without_configuration(self):
        garbled = as_text(self.MESSAGE.encode('gbk'))
        assert normalize_error(garbled) == self.MESSAGE

    def test_plain_messages_are_unchanged(self):
        assert normalize_error('no such table: users', 'GBK') == 'no such table: users'

    def test_none_becomes_empty(self):
        assert normalize_error(None) == ''

    def test_cjk_detection(self):
        assert contains_cjk(self.MESSAGE)
        assert not contains_cjk(as_text(self.MESSAGE.encode('gbk')))
        assert is_valid_utf8('abc')
        assert not is_valid_utf8(b'\xff')


@pytest.mark.unit
class TestCharsetSettings:

    def test_defaults(self):
        settings = CharsetSettings()
        assert settings.output_charset == 'UTF-8'
        assert not settings.converts_data

    def test_threads_labels(self):
        settings = CharsetSettings(data_charset='GBK')
        assert settings.converts_data
        rows = [{'name': as_text(GBK_BYTES)}]
        settings.normalize_rows(rows)
        assert rows[0]['name'] == CHINESE
        assert settings.prepare_outbound(CHINESE).encode('utf-8', 'surrogateescape') == GBK_BYTES
        assert settings.normalize_error(as_text('错误'.encode('gbk'))) == '错误'
