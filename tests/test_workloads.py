"""
Тесты разбора размеров, весов и выбора операций
"""

import random
from collections import Counter

import pytest

from loadgen.errors import ConfigError
from loadgen.workloads import (
    Operation,
    expand_distribution,
    needs_read_queue,
    parse_distribution,
    parse_human,
    parse_operations,
)


class TestParseHuman:
    """Тесты parse_human"""

    @pytest.mark.parametrize("value,expected", [
        ("4k", 4096),
        ("1M", 1048576),
        ("1g", 1073741824),
        ("1T", 1099511627776),
        ("0", 0),
    ])
    def test_valid_sizes(self, value, expected):
        assert parse_human(value) == expected

    @pytest.mark.parametrize("value", [
        "4", "4b", "-1k", "1Y", "T1", "", "1.5k", "0k0",
        "4k\n", " 4k", "\u0664k",
    ])
    def test_invalid_sizes(self, value):
        with pytest.raises(ConfigError):
            parse_human(value)


class TestExpandDistribution:
    """Тесты expand_distribution"""

    def test_plain_list(self):
        assert expand_distribution("1,2,3") == ["1", "2", "3"]

    def test_weights(self):
        assert expand_distribution("1:2,2:2,3:1") == ["1", "1", "2", "2", "3"]

    def test_string_tokens(self):
        assert expand_distribution("r:2,w:2") == ["r", "r", "w", "w"]
        assert expand_distribution("hello:1") == ["hello"]

    def test_too_many_multiples(self):
        with pytest.raises(ConfigError, match="too many multiples"):
            expand_distribution("1:2:3")

    def test_non_numeric_weight(self):
        with pytest.raises(ConfigError, match="failed to parse 'cat'"):
            expand_distribution("1:cat")

    def test_negative_weight(self):
        with pytest.raises(ConfigError):
            expand_distribution("w:-1")


class TestParseDistribution:
    """Тесты parse_distribution"""

    def test_sizes_in_bytes(self):
        assert parse_distribution("1k,2k:2,3k") == [1024, 2048, 2048, 3072]

    def test_unitless_sizes_rejected(self):
        with pytest.raises(ConfigError):
            parse_distribution("1,2,3")

    def test_empty_after_expansion(self):
        with pytest.raises(ConfigError, match="empty"):
            parse_distribution("1k:0")


class TestParseOperations:
    """Тесты parse_operations и взвешенного выбора"""

    def test_default_mix(self):
        assert parse_operations("r,w") == [Operation.READ, Operation.WRITE]

    def test_weighted_multiset(self):
        ops = parse_operations("r:3,w:1")
        assert len(ops) == 4
        assert Counter(ops) == {Operation.READ: 3, Operation.WRITE: 1}

    def test_long_names_and_case(self):
        assert parse_operations("Read,WRITE,delete") == [
            Operation.READ, Operation.WRITE, Operation.DELETE]

    def test_unknown_operation(self):
        with pytest.raises(ConfigError, match="unknown operation"):
            parse_operations("r,x")

    def test_error_kind_not_selectable(self):
        with pytest.raises(ConfigError):
            parse_operations("error")

    def test_empty_workload(self):
        with pytest.raises(ConfigError):
            parse_operations("r:0,w:0")

    def test_uniform_draw_converges_to_weights(self):
        ops = parse_operations("r:3,w:1")
        rng = random.Random(1234)
        counts = Counter(rng.choice(ops) for _ in range(40000))
        ratio = counts[Operation.READ] / counts[Operation.WRITE]
        assert 2.8 < ratio < 3.2

    def test_needs_read_queue(self):
        assert needs_read_queue([Operation.WRITE, Operation.READ])
        assert needs_read_queue([Operation.WRITE, Operation.DELETE])
        assert not needs_read_queue([Operation.WRITE])
