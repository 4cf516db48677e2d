"""
推文链接解析测试。

验收标准：
1. x.com / twitter.com（含 www. / mobile.）的 status 链接能解析出 record id 与 handle
2. 纯数字 id 直接通过
3. 非推文链接、非法域名、非数字 id 失败，并给出可展示的错误原因
"""

import unittest

from src.shared.validators.x_status_url import parse_status_url


class TestParseStatusUrl(unittest.TestCase):
    """推文链接解析"""

    def test_basic_status_url(self):
        """标准推文链接"""
        result = parse_status_url("https://x.com/XDevelopers/status/1782199752874246406")
        self.assertTrue(result.valid)
        self.assertEqual(result.record_id, "1782199752874246406")
        self.assertEqual(result.handle, "XDevelopers")
        self.assertIsNone(result.error)

    def test_hosts_and_trailing_paths(self):
        """twitter.com、子域名、/photo/<n> 等附加路径、query 均可解析"""
        for url in (
            "https://twitter.com/alice/status/42",
            "https://www.twitter.com/alice/status/42",
            "https://mobile.x.com/alice/status/42",
            "http://x.com/alice/status/42/photo/1",
            "https://x.com/alice/status/42/video/1?s=20",
            "https://x.com/alice/status/42/analytics",
        ):
            with self.subTest(url=url):
                result = parse_status_url(url)
                self.assertTrue(result)
                self.assertEqual(result.record_id, "42")
                self.assertEqual(result.handle, "alice")

    def test_web_status_url_has_no_handle(self):
        """/i/web/status 链接没有用户名"""
        result = parse_status_url("https://x.com/i/web/status/42")
        self.assertTrue(result.valid)
        self.assertEqual(result.record_id, "42")
        self.assertIsNone(result.handle)

    def test_bare_record_id(self):
        """纯数字 id"""
        result = parse_status_url("  1782199752874246406 ")
        self.assertTrue(result.valid)
        self.assertEqual(result.record_id, "1782199752874246406")

    def test_empty_input(self):
        for value in ("", "   "):
            with self.subTest(value=value):
                result = parse_status_url(value)
                self.assertFalse(result)
                self.assertIn("不能为空", result.error)

    def test_rejected_inputs_explain_reason(self):
        cases = {
            "x.com/alice/status/42": "协议",
            "https://example.com/alice/status/42": "域名",
            "https://x.com/alice": "不是推文链接",
            "https://x.com/alice/media": "不是推文链接",
            "https://x.com/alice/status/abc": "必须是数字",
            "https://x.com/i/web/status/abc": "必须是数字",
            "https://x.com/al-ice/status/42": "用户名格式无效",
        }
        for value, fragment in cases.items():
            with self.subTest(value=value):
                result = parse_status_url(value)
                self.assertFalse(result.valid)
                self.assertIsNone(result.record_id)
                self.assertIn(fragment, result.error)


if __name__ == "__main__":
    unittest.main()
