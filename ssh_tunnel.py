import time
import socket
import logging
import subprocess
from reconciler_config import REMOTE_DB_PORT, SSH_PORT

TUNNEL_READY_TIMEOUT = 15
TUNNEL_POLL_INTERVAL = 0.25


class SSHTunnel:
    """Local port forward to the database host through the ``ssh`` binary.

    A tunnel that fails to come up is logged but not raised; callers carry on
    and any database call made afterwards fails on its own.
    """

    def __init__(self, username, host, key_file, local_port, remote_port=REMOTE_DB_PORT,
                 ssh_port=SSH_PORT, ready_timeout=TUNNEL_READY_TIMEOUT):
        self.username = username
        self.host = host
        self.key_file = key_file
        self.local_port = int(local_port)
        self.remote_port = remote_port
        self.ssh_port = ssh_port
        self.ready_timeout = ready_timeout
        self.process = None
        self.error = None

    def command(self):
        return [
            "ssh", "-N",
            "-o", "ExitOnForwardFailure=yes",
            "-o", "BatchMode=yes",
            "-i", self.key_file,
            "-p", str(self.ssh_port),
            "-L", f"{self.local_port}:127.0.0.1:{self.remote_port}",
            f"{self.username}@{self.host}",
        ]

    def _port_open(self):
        try:
            with socket.create_connection(("127.0.0.1", self.local_port), timeout=1):
                return True
        except OSError:
            return False

    def start(self):
        logging.info(f"Opening SSH tunnel {self.username}@{self.host} -> localhost:{self.local_port}")
        try:
            self.process = subprocess.Popen(self.command(), stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True)
        except OSError as e:
            self.error = str(e)
            logging.error(f"SSH connection error: {e}")
            return self

        deadline = time.monotonic() + self.ready_timeout
        while time.monotonic() < deadline:
            if self.process.poll() is not None:
                stderr = self.process.stderr.read().strip() if self.process.stderr else ""
                self.error = stderr or f"ssh exited with code {self.process.returncode}"
                logging.error(f"SSH connection error: {self.error}")
                return self
            if self._port_open():
                logging.info("SSH tunnel established.")
                return self
            time.sleep(TUNNEL_POLL_INTERVAL)

        self.error = f"local port {self.local_port} not reachable after {self.ready_timeout}s"
        logging.error(f"SSH connection error: {self.error}")
        return self

    def stop(self):
        if self.process and self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            logging.info("SSH tunnel closed.")

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
