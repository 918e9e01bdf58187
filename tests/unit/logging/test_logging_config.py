"""Tests for StreamLoggingConfig."""

import structlog

from stream_delivery.logging import (
    SamplingStrategy,
    StreamLoggingConfig,
    configure_logging,
    get_logging_config,
    set_logging_config,
)


class TestStreamLoggingConfig:
    """Test suite for StreamLoggingConfig class."""

    def test_default_config(self):
        config = StreamLoggingConfig()

        assert config.level == "INFO"
        assert config.debug_sample_rate == 0.0
        assert config.sampling_strategy == SamplingStrategy.RANDOM
        assert config.operation_levels == {}
        assert config.json_output is True

    def test_should_log_debug_disabled(self):
        config = StreamLoggingConfig(debug_sample_rate=0.0)

        for _ in range(100):
            assert not config.should_log_debug("bandwidth_sample")

    def test_should_log_debug_enabled(self):
        config = StreamLoggingConfig(debug_sample_rate=1.0)

        for _ in range(100):
            assert config.should_log_debug("probe_source")

    def test_random_sampling(self):
        config = StreamLoggingConfig(debug_sample_rate=0.5, sampling_strategy=SamplingStrategy.RANDOM)

        sample_count = sum(config.should_log_debug() for _ in range(1000))

        # Roughly half, allowing for randomness
        assert 400 <= sample_count <= 600

    def test_deterministic_sampling(self):
        config = StreamLoggingConfig(
            debug_sample_rate=0.5, sampling_strategy=SamplingStrategy.DETERMINISTIC
        )

        results = {config.should_log_debug(request_id="abc123def456") for _ in range(10)}

        assert len(results) == 1

    def test_operation_override(self):
        """Test an operation pinned to INFO never emits sampled debug logs."""
        config = StreamLoggingConfig(
            debug_sample_rate=1.0,
            operation_levels={"bandwidth_sample": "INFO", "probe_source": "DEBUG"},
        )

        assert not config.should_log_debug(operation="bandwidth_sample")
        assert config.should_log_debug(operation="probe_source")
        assert config.should_log_debug(operation="unknown_op")

    def test_sampling_strategy_none(self):
        config = StreamLoggingConfig(debug_sample_rate=0.1, sampling_strategy=SamplingStrategy.NONE)

        for _ in range(100):
            assert config.should_log_debug()

    def test_get_effective_level(self):
        config = StreamLoggingConfig(level="INFO", operation_levels={"health_cycle": "WARNING"})

        assert config.get_effective_level("health_cycle") == "WARNING"
        assert config.get_effective_level("check_item") == "INFO"
        assert config.get_effective_level(None) == "INFO"

    def test_from_dict_ignores_unknown_keys(self):
        config = StreamLoggingConfig.from_dict({
            "level": "DEBUG",
            "debug_sample_rate": 0.25,
            "sampling_strategy": "deterministic",
            "operation_levels": {"health_cycle": "INFO"},
            "format": "ignored",
        })

        assert config.level == "DEBUG"
        assert config.sampling_strategy == SamplingStrategy.DETERMINISTIC
        assert config.operation_levels["health_cycle"] == "INFO"

    def test_round_trip_through_dict(self):
        config = StreamLoggingConfig(level="WARNING", json_output=False)

        assert StreamLoggingConfig.from_dict(config.to_dict()) == config

    def test_global_config(self):
        original = get_logging_config()
        try:
            set_logging_config(StreamLoggingConfig(level="DEBUG", debug_sample_rate=0.5))

            assert get_logging_config().level == "DEBUG"
        finally:
            set_logging_config(original)

    def test_configure_logging_installs_config(self):
        original = get_logging_config()
        try:
            config = StreamLoggingConfig(level="WARNING", json_output=False)

            configure_logging(config)

            assert get_logging_config() is config
        finally:
            set_logging_config(original)
            structlog.reset_defaults()
