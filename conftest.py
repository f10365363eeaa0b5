import json
import pytest
import requests


class FakeResponse:

    def __init__(self, body, status_code=200):
        self.text = body
        self.status_code = status_code

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands for requests.Session; answers from a dict ip -> body or exception"""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.urls = []

    def get(self, url, headers=None, timeout=None):
        self.urls.append(url)
        ip = url.split("/")[3]
        answer = self.answers.get(ip, json.dumps({"ip": ip}))
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, FakeResponse):
            return answer
        return FakeResponse(answer)


@pytest.fixture
def fake_session():
    return FakeSession({
        "1.2.3.4": json.dumps({"ip": "1.2.3.4", "org": "AS64500 Example Hosting"}),
        "5.6.7.8": json.dumps({"ip": "5.6.7.8", "org": "AS64501 Other Net"}),
        "5.6.7.9": json.dumps({"ip": "5.6.7.9", "org": "AS64501 Other Net"}),
        "10.0.0.1": json.dumps({"ip": "10.0.0.1", "bogon": True}),
        "1.1.1.1": FakeResponse("<html>Too Many Requests</html>", 429),
        "9.9.9.9": requests.exceptions.ConnectionError("Connection refused"),
    })
