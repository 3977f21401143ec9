from io import BytesIO

from app import db
from models import Profile, UserProgress


def test_get_and_update_profile(user_client):
    client, user_id = user_client

    assert client.get("/api/profile").get_json()["id"] == user_id

    response = client.put("/api/profile", json={
        "full_name": "Alice S.",
        "github_url": "https://github.com/alice-dev",
        "linkedin_url": "",
    })

    assert response.status_code == 200
    profile = response.get_json()["profile"]
    assert profile["full_name"] == "Alice S."
    assert profile["github_url"] == "https://github.com/alice-dev"
    assert profile["linkedin_url"] is None


def test_update_profile_rejects_bad_url(user_client):
    client, _ = user_client

    response = client.put("/api/profile", json={"linkedin_url": "https://example.com/alice"})

    assert response.status_code == 400
    assert "linkedin_url" in response.get_json()["errors"]


def test_resume_upload_extracts_text(flask_app, user_client):
    client, user_id = user_client
    resume = b"Alice Sharma\n\n\n\nProjects:   Campus   marketplace in Django\n"

    response = client.post("/api/profile/resume", data={"resume": (BytesIO(resume), "alice_cv.txt")},
                           content_type="multipart/form-data")

    assert response.status_code == 200
    body = response.get_json()
    assert body["has_resume_content"] is True
    assert body["resume_url"].startswith(f"/storage/resumes/{user_id}/")

    with flask_app.app_context():
        profile = db.session.get(Profile, user_id)
        assert profile.resume_content == "Alice Sharma\n\nProjects: Campus marketplace in Django"

    served = client.get(body["resume_url"])
    assert served.status_code == 200
    assert served.data == resume
    served.close()


def test_resume_upload_rejects_unsupported_type(user_client):
    client, _ = user_client

    response = client.post("/api/profile/resume", data={"resume": (BytesIO(b"MZ"), "setup.exe")},
                           content_type="multipart/form-data")

    assert response.status_code == 400


def test_storage_hides_other_users_files(user_client, make_client):
    client, user_id = user_client
    url = client.post("/api/profile/resume", data={"resume": (BytesIO(b"My resume"), "cv.txt")},
                      content_type="multipart/form-data").get_json()["resume_url"]
    other, _ = make_client("eve@example.com")

    assert other.get(url).status_code == 404
    assert client.get(f"/storage/unknown-bucket/{user_id}/cv.txt").status_code == 404


def test_job_profiles_are_seeded(user_client):
    client, _ = user_client

    titles = [p["title"] for p in client.get("/api/job-profiles").get_json()["job_profiles"]]

    assert len(titles) == 4
    assert "Data Scientist" in titles
    assert titles == sorted(titles)


def test_learning_paths_filter_by_job_profile(user_client):
    client, _ = user_client
    job_profiles = client.get("/api/job-profiles").get_json()["job_profiles"]
    data_scientist = next(p for p in job_profiles if p["title"] == "Data Scientist")

    paths = client.get(f"/api/learning-paths?job_profile_id={data_scientist['id']}").get_json()["learning_paths"]

    assert paths
    assert {p["job_profile_id"] for p in paths} == {data_scientist["id"]}
    assert [p["priority"] for p in paths] == sorted(p["priority"] for p in paths)
    assert all(p["completed"] is False for p in paths)


def test_learning_progress_toggle(flask_app, user_client):
    client, user_id = user_client
    path_id = client.get("/api/learning-paths").get_json()["learning_paths"][0]["id"]

    done = client.post(f"/api/learning-paths/{path_id}/progress", json={"completed": True, "notes": "Finished"})
    assert done.status_code == 200
    assert done.get_json()["progress"]["completed_at"] is not None

    listed = client.get("/api/learning-paths").get_json()["learning_paths"]
    assert next(p for p in listed if p["id"] == path_id)["completed"] is True

    undone = client.post(f"/api/learning-paths/{path_id}/progress", json={"completed": False})
    assert undone.get_json()["progress"]["completed_at"] is None
    with flask_app.app_context():
        rows = UserProgress.query.filter_by(user_id=user_id, learning_path_id=path_id).all()
        assert len(rows) == 1
        assert rows[0].notes == "Finished"


def test_learning_progress_unknown_path(user_client):
    client, _ = user_client

    assert client.post("/api/learning-paths/9999/progress", json={"completed": True}).status_code == 404
