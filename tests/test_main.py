#!/usr/bin/env python3

import os
import json
import pytest
from unittest.mock import Mock, patch, AsyncMock

from shared_deps.build.orchestrator import BuildSummary
from shared_deps.errors import FatalBuildError
from shared_deps.main import setup_logging, create_argument_parser, load_build_config, main


class TestLoggingSetup:
    """Test logging configuration"""

    @patch('logging.basicConfig')
    def test_setup_logging_default(self, mock_basicConfig):
        """Test diagnostics go to stderr only by default"""
        setup_logging()

        mock_basicConfig.assert_called_once()
        call_args = mock_basicConfig.call_args

        assert call_args[1]['level'] == 30  # WARNING level
        handlers = call_args[1]['handlers']
        assert len(handlers) == 1
        assert not any(hasattr(h, 'baseFilename') for h in handlers)

    @patch('logging.basicConfig')
    def test_setup_logging_with_file(self, mock_basicConfig, temp_dir):
        """Test a log file adds a file handler and creates its directory"""
        log_file = os.path.join(temp_dir, "logs", "shared-deps.log")

        setup_logging("DEBUG", log_file)

        call_args = mock_basicConfig.call_args
        assert call_args[1]['level'] == 10  # DEBUG level
        file_handler = next(h for h in call_args[1]['handlers'] if hasattr(h, 'baseFilename'))
        assert file_handler.baseFilename == log_file
        assert os.path.isdir(os.path.join(temp_dir, "logs"))
        file_handler.close()


class TestArgumentParser:
    """Test command-line argument parsing"""

    def setup_method(self):
        """Set up test fixtures"""
        self.parser = create_argument_parser()

    def test_defaults(self):
        """Test build is the default command and nothing is overridden"""
        args = self.parser.parse_args([])

        assert args.command == "build"
        assert args.config is None
        assert args.output_dir is None
        assert args.clean is None
        assert args.log_level is None
        assert args.from_package_json is None
        assert args.verbose is False

    def test_build_with_config(self):
        """Test the config path follows the command"""
        args = self.parser.parse_args(["build", "deps.yaml", "--clean", "-l", "warn", "-o", "mirror"])

        assert args.config == "deps.yaml"
        assert args.clean is True
        assert args.log_level == "warn"
        assert args.output_dir == "mirror"

    def test_from_package_json_default_path(self):
        """Test --from-package-json without a value reads ./package.json"""
        args = self.parser.parse_args(["--from-package-json"])

        assert args.from_package_json == "package.json"

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected by the parser"""
        with pytest.raises(SystemExit):
            self.parser.parse_args(["--log-level", "info"])

    def test_invalid_command(self):
        """Test unknown commands are rejected"""
        with pytest.raises(SystemExit):
            self.parser.parse_args(["deploy"])


class TestLoadBuildConfig:
    """Test merging the config file with command-line options"""

    def setup_method(self):
        """Set up test fixtures"""
        self.parser = create_argument_parser()

    def test_file_values_with_overrides(self, write_config, sample_build_config):
        """Test command-line options replace file values"""
        config_path = write_config(sample_build_config)
        args = self.parser.parse_args(["build", config_path, "-o", "mirror", "--dockerfile"])

        raw = load_build_config(args)

        assert raw['outputDir'] == "mirror"
        assert raw['generateDeploymentFile'] is True
        assert raw['clean'] is True
        assert raw['packages'] == sample_build_config['packages']

    def test_config_from_environment(self, write_config, monkeypatch):
        """Test SHARED_DEPENDENCIES_CONFIG is used when no path is given"""
        monkeypatch.setenv('SHARED_DEPENDENCIES_CONFIG', write_config({'outputDir': 'env', 'packages': []}))
        args = self.parser.parse_args([])

        assert load_build_config(args)['outputDir'] == "env"

    def test_from_package_json_without_config(self, temp_dir, monkeypatch):
        """Test package.json alone is enough when there is no config file"""
        monkeypatch.delenv('SHARED_DEPENDENCIES_CONFIG', raising=False)
        monkeypatch.chdir(temp_dir)
        with open("package.json", 'w') as f:
            json.dump({'dependencies': {'react': '^17.0.1'}}, f)
        args = self.parser.parse_args(["--from-package-json", "--clean"])

        raw = load_build_config(args)

        assert raw == {'clean': True, 'packages': [{'name': 'react', 'versions': ['^17.0.1']}]}

    def test_from_package_json_replaces_file_packages(self, temp_dir, write_config, sample_build_config):
        """Test package.json dependencies replace the configured package list"""
        config_path = write_config(sample_build_config)
        manifest = os.path.join(temp_dir, "app.json")
        with open(manifest, 'w') as f:
            json.dump({'dependencies': {'lodash': '4.17.21'}}, f)
        args = self.parser.parse_args(["build", config_path, "--from-package-json", manifest])

        raw = load_build_config(args)

        assert raw['outputDir'] == "out"
        assert raw['packages'] == [{'name': 'lodash', 'versions': ['4.17.21']}]

    def test_missing_config_file(self, temp_dir):
        """Test a missing config file without package.json fallback is an error"""
        args = self.parser.parse_args(["build", os.path.join(temp_dir, "missing.yaml")])

        with pytest.raises(ValueError, match="Config file not found"):
            load_build_config(args)


class TestMain:
    """Test the main entry point"""

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    @patch('shared_deps.main.BuildOrchestrator')
    async def test_build_success(self, mock_orchestrator_class, mock_setup_logging, write_config,
                                 sample_build_config):
        """Test a successful build exits with 0"""
        mock_orchestrator = Mock()
        mock_orchestrator.build = AsyncMock(return_value=BuildSummary(output_dir="out"))
        mock_orchestrator_class.return_value = mock_orchestrator

        result = await main(["build", write_config(sample_build_config)])

        assert result == 0
        mock_orchestrator_class.assert_called_once()
        assert mock_orchestrator_class.call_args[0][0]['outputDir'] == "out"
        mock_setup_logging.assert_called_once_with("WARNING", None)

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    async def test_verbose_logging(self, mock_setup_logging, temp_dir):
        """Test --verbose enables internal diagnostics"""
        await main(["build", os.path.join(temp_dir, "missing.yaml"), "--verbose"])

        mock_setup_logging.assert_called_once_with("DEBUG", None)

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    async def test_validation_error(self, mock_setup_logging, write_config, capsys):
        """Test an invalid request exits with 1 and prints the message"""
        config_path = write_config({'packages': 'react'})

        result = await main(["build", config_path])

        assert result == 1
        assert "self-hosted-shared-dependencies: Invalid packages option - must be array" in capsys.readouterr().err

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    async def test_missing_config(self, mock_setup_logging, temp_dir, capsys):
        """Test a missing config file exits with 1"""
        result = await main(["build", os.path.join(temp_dir, "missing.yaml")])

        assert result == 1
        assert "Config file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    @patch('shared_deps.main.BuildOrchestrator')
    async def test_fatal_build(self, mock_orchestrator_class, mock_setup_logging, write_config,
                               sample_build_config):
        """Test a fatal build event exits with 1"""
        mock_orchestrator = Mock()
        mock_orchestrator.build = AsyncMock(side_effect=FatalBuildError("----> No matching versions for react"))
        mock_orchestrator_class.return_value = mock_orchestrator

        assert await main(["build", write_config(sample_build_config)]) == 1

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    @patch('shared_deps.main.BuildOrchestrator')
    async def test_keyboard_interrupt(self, mock_orchestrator_class, mock_setup_logging, write_config,
                                      sample_build_config):
        """Test interruption exits with 130"""
        mock_orchestrator = Mock()
        mock_orchestrator.build = AsyncMock(side_effect=KeyboardInterrupt())
        mock_orchestrator_class.return_value = mock_orchestrator

        assert await main(["build", write_config(sample_build_config)]) == 130

    @pytest.mark.asyncio
    @patch('shared_deps.main.setup_logging')
    @patch('shared_deps.main.BuildOrchestrator')
    async def test_unexpected_error(self, mock_orchestrator_class, mock_setup_logging, write_config,
                                    sample_build_config):
        """Test unexpected exceptions exit with 1"""
        mock_orchestrator = Mock()
        mock_orchestrator.build = AsyncMock(side_effect=RuntimeError("boom"))
        mock_orchestrator_class.return_value = mock_orchestrator

        assert await main(["build", write_config(sample_build_config)]) == 1
