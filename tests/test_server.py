from pathlib import Path
import tempfile
import unittest
from unittest import mock

from handshare import server
from handshare.models.config import AppConfig, ServerConfig
from handshare.services.config_store import ConfigStore


class RelayLauncherTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "relay.yaml"
        ConfigStore(self.path).save(AppConfig(server=ServerConfig(host="127.0.0.9", port=9123)))

    def test_binds_configured_host_and_port(self):
        with mock.patch.object(server.uvicorn, "run") as run:
            server.main(["--config", str(self.path)])

        run.assert_called_once()
        app = run.call_args.args[0]
        self.assertEqual(run.call_args.kwargs["host"], "127.0.0.9")
        self.assertEqual(run.call_args.kwargs["port"], 9123)
        self.assertEqual(app.state.runtime.config_store.path, self.path)

    def test_command_line_overrides_config(self):
        with mock.patch.object(server.uvicorn, "run") as run:
            server.main(["--config", str(self.path), "--host", "0.0.0.0", "--port", "9000"])

        self.assertEqual(run.call_args.kwargs["host"], "0.0.0.0")
        self.assertEqual(run.call_args.kwargs["port"], 9000)


if __name__ == "__main__":
    unittest.main()
