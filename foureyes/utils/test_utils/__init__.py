from foureyes.utils.test_utils.mock_config_helper import mock_config_helper

__all__ = ["mock_config_helper"]
