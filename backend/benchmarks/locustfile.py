import uuid

from locust import HttpUser, task, between


class TranslatorUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        payload = {"email": f"load-{uuid.uuid4().hex[:8]}@example.com", "password": "password"}
        r = self.client.post("/api/auth/register", json=payload)
        if r.status_code != 200:
            r = self.client.post("/api/auth/login", json=payload)
        token = r.json().get("access_token")
        self.headers = {"Authorization": f"Bearer {token}"}

        project = self.client.post("/api/projects", json={"name": "bench project"}, headers=self.headers).json()
        self.project_id = project["id"]
        for tag, name in (("en", "English"), ("de", "German")):
            self.client.post(
                f"/api/projects/{self.project_id}/languages",
                json={"tag": tag, "name": name},
                headers=self.headers,
            )
        self.last_modified = None

    @task(5)
    def export(self):
        headers = dict(self.headers)
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        with self.client.get(
            f"/api/projects/{self.project_id}/translations/en,de",
            headers=headers,
            name="/api/projects/[id]/translations/[languages]",
            catch_response=True,
        ) as r:
            if r.status_code in (200, 304):
                self.last_modified = r.headers.get("Last-Modified", self.last_modified)
                r.success()

    @task(1)
    def set_translations(self):
        data = {
            "key": f"bench.key{uuid.uuid4().hex[:4]}",
            "translations": {"en": "Hello", "de": "Hallo"},
        }
        self.client.post(
            f"/api/projects/{self.project_id}/translations",
            json=data,
            headers=self.headers,
            name="/api/projects/[id]/translations",
        )
