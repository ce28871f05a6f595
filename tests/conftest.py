"""
Pytest configuration: zero settle delays so pipeline tests run instantly.
"""

import pytest

from config import InferenceSettings, PipelineSettings


@pytest.fixture
def pipeline_settings():
    return PipelineSettings(
        target_window_title="ERP system",
        header_settle_delay=0,
        field_settle_delay=0,
        item_settle_delay=0,
        save_settle_delay=0,
    )


@pytest.fixture
def inference_settings():
    return InferenceSettings(
        api_key="test-key",
        base_url="http://inference.test/v1",
        model="gpt-4o",
        max_retries=3,
        retry_base_delay=0,
    )
