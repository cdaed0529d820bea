import http.client
import json
import threading
import unittest
import uuid
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from errors import InvalidParameter
from font_catalog import FontCatalog
from font_fixtures import png_bytes, solid_png, table_from_samples
from server_config import ServiceConfig
from web_service import make_server, parse_multipart


def _catalog():
    table = table_from_samples([(" ", 0.0), ("+", 0.5), ("@", 1.0)], width=10, height=20)
    return FontCatalog({"mono": {10: table, 12: table}})


def _multipart(fields):
    boundary = uuid.uuid4().hex
    chunks = []
    for name, value in fields.items():
        if isinstance(value, str):
            value = value.encode("utf-8")
        chunks.append(
            f"--{boundary}\r\n"
            f"Content-Disposition: form-data; name=\"{name}\"; filename=\"{name}.bin\"\r\n"
            f"Content-Type: application/octet-stream\r\n\r\n".encode("utf-8")
        )
        chunks.append(value + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode("utf-8"))
    return f"multipart/form-data; boundary={boundary}", b"".join(chunks)


class ParseMultipartTest(unittest.TestCase):
    def test_binary_fields_survive(self):
        payload = bytes(range(256)) * 4
        content_type, body = _multipart({"file": payload, "size": "12"})
        fields = parse_multipart(content_type, body)
        self.assertEqual(fields["file"], payload)
        self.assertEqual(fields["size"], b"12")

    def test_not_multipart(self):
        with self.assertRaises(InvalidParameter):
            parse_multipart("application/json", b"{}")
        with self.assertRaises(InvalidParameter):
            parse_multipart(None, b"")


class CatalogServiceTest(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        config = ServiceConfig(host="127.0.0.1", port=0, max_upload_bytes=64 * 1024,
                               max_concurrent_renders=2, request_timeout=5)
        cls.httpd = make_server(_catalog(), config)
        cls.port = cls.httpd.server_address[1]
        cls.thread = threading.Thread(target=cls.httpd.serve_forever, daemon=True)
        cls.thread.start()

    @classmethod
    def tearDownClass(cls):
        cls.httpd.shutdown()
        cls.httpd.server_close()
        cls.thread.join(timeout=5)

    def _request(self, method, path="/", body=None, headers=None):
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            resp = conn.getresponse()
            return resp.status, resp.getheader("Content-Type"), resp.read()
        finally:
            conn.close()

    def _render(self, fields):
        content_type, body = _multipart(fields)
        return self._request("POST", "/", body=body,
                             headers={"aa-action": "render", "Content-Type": content_type})

    def test_list_by_header(self):
        status, ctype, body = self._request("GET", "/", headers={"aa-action": "list"})
        self.assertEqual(status, 200)
        self.assertEqual(ctype, "application/json")
        self.assertEqual(json.loads(body), {"mono": [10, 12]})

    def test_list_by_query(self):
        status, _, body = self._request("GET", "/?action=list")
        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body), {"mono": [10, 12]})

    def test_missing_action(self):
        status, _, _ = self._request("GET", "/")
        self.assertEqual(status, 400)

    def test_render(self):
        status, ctype, body = self._render({"file": solid_png(40, 40, 0), "font": "mono", "size": "10"})
        self.assertEqual(status, 200)
        self.assertTrue(ctype.startswith("text/plain"))
        self.assertEqual(body.decode("utf-8"), "@@@@\n@@@@\n")

    def test_render_errors(self):
        image = solid_png(20, 20, 0)
        cases = [
            ({"file": image, "font": "mono", "size": "0"}, 400),
            ({"file": image, "font": "nonexistent", "size": "12"}, 404),
            ({"file": image, "font": "mono", "font_file": b"\x00\x01", "size": "12"}, 400),
            ({"file": b"not an image", "font": "mono", "size": "12"}, 400),
        ]
        for fields, expected in cases:
            with self.subTest(fields=sorted(fields)):
                status, _, body = self._render(fields)
                self.assertEqual(status, expected)
                self.assertTrue(body)

    def test_render_requires_post(self):
        status, _, _ = self._request("GET", "/?action=render")
        self.assertEqual(status, 400)

    def test_render_requires_multipart(self):
        status, _, _ = self._request("POST", "/", body=b"size=12",
                                     headers={"aa-action": "render",
                                              "Content-Type": "application/x-www-form-urlencoded"})
        self.assertEqual(status, 400)

    def test_upload_limit(self):
        # Declared length alone is enough; the body is never read.
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
        try:
            conn.putrequest("POST", "/")
            conn.putheader("aa-action", "render")
            conn.putheader("Content-Type", "multipart/form-data; boundary=x")
            conn.putheader("Content-Length", str(128 * 1024))
            conn.endheaders()
            resp = conn.getresponse()
            resp.read()
            self.assertEqual(resp.status, 413)
        finally:
            conn.close()

    def test_options_preflight(self):
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=10)
        try:
            conn.request("OPTIONS", "/")
            resp = conn.getresponse()
            resp.read()
            self.assertEqual(resp.status, 204)
            self.assertIn("aa-action", resp.getheader("Access-Control-Allow-Headers"))
        finally:
            conn.close()

    def test_health(self):
        status, _, body = self._request("GET", "/health")
        self.assertEqual(status, 200)
        self.assertEqual(body, b"ok\n")

    def test_busy_server_answers_503(self):
        slots = self.httpd.render_slots
        taken = 0
        while slots.acquire(blocking=False):
            taken += 1
        try:
            status, _, _ = self._render({"file": solid_png(10, 10, 0), "font": "mono", "size": "10"})
        finally:
            for _ in range(taken):
                slots.release()
        self.assertEqual(status, 503)


class ConcurrentRenderTest(unittest.TestCase):
    WORKERS = 4

    def setUp(self):
        config = ServiceConfig(host="127.0.0.1", port=0, max_upload_bytes=256 * 1024,
                               max_concurrent_renders=self.WORKERS + 2, request_timeout=10)
        self.httpd = make_server(_catalog(), config)
        self.port = self.httpd.server_address[1]
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()

    def tearDown(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join(timeout=5)

    def _render(self, image, size, barrier=None):
        content_type, body = _multipart({"file": image, "font": "mono", "size": size})
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=20)
        try:
            if barrier is not None:
                barrier.wait(timeout=10)
            conn.request("POST", "/", body=body,
                         headers={"aa-action": "render", "Content-Type": content_type})
            resp = conn.getresponse()
            return resp.status, resp.read()
        finally:
            conn.close()

    def test_parallel_renders_match_serial_output(self):
        rng = np.random.default_rng(11)
        images = [png_bytes(rng.integers(0, 256, size=(160, 200), dtype=np.uint8)) for _ in range(2)]
        jobs = [(images[i % 2], ("10", "12")[i % 2]) for i in range(self.WORKERS)]
        expected = {job: self._render(*job) for job in set(jobs)}
        for status, body in expected.values():
            self.assertEqual(status, 200)
            self.assertTrue(body)

        barrier = threading.Barrier(self.WORKERS)
        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            futures = [pool.submit(self._render, image, size, barrier) for image, size in jobs]
            results = [fut.result() for fut in futures]

        for job, result in zip(jobs, results):
            self.assertEqual(result, expected[job])


if __name__ == "__main__":
    unittest.main()
