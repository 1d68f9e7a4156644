import logging

from replicator_gen.logging import configure_logging, get_logger


class TestConfigureLogging:
    def test_component_logger_name(self):
        assert get_logger("codegen").name == "replicator_gen.codegen"
        assert get_logger().name == "replicator_gen"

    def test_levels(self):
        assert configure_logging().level == logging.INFO
        assert configure_logging(verbose=True).level == logging.DEBUG

    def test_file_sink(self, tmp_path):
        log_file = tmp_path / "gen.log"
        configure_logging(log_file=log_file)
        get_logger("manager").info("hello")

        assert "replicator_gen.manager: hello" in log_file.read_text(encoding="utf-8")

    def test_reconfigure_closes_old_handlers(self, tmp_path):
        logger = configure_logging(log_file=tmp_path / "first.log")
        file_handler = next(h for h in logger.handlers if isinstance(h, logging.FileHandler))
        assert file_handler.stream is not None

        configure_logging()
        assert file_handler not in logger.handlers
        assert file_handler.stream is None
        assert len(logger.handlers) == 1
