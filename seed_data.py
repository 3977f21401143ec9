"""
Reference data for job profiles and their learning paths.
Loaded once on startup when the tables are empty.
"""

import logging
from app import db
from models import JobProfile, LearningPath

JOB_PROFILES = [
    {
        "title": "Software Engineer Intern",
        "category": "Software Engineering",
        "description": "Data structures, algorithms and clean code for product engineering teams.",
        "icon": "code",
        "paths": [
            ("Arrays, Strings and Hashing", "Core patterns behind most coding rounds.", [
                {"title": "NeetCode Arrays & Hashing", "url": "https://neetcode.io/roadmap", "type": "practice"},
            ]),
            ("Trees and Graphs", "Traversals, shortest paths and topological sort.", [
                {"title": "CP-Algorithms Graphs", "url": "https://cp-algorithms.com/", "type": "article"},
            ]),
            ("Object-Oriented Design", "Model real systems with classes and interfaces.", [
                {"title": "Refactoring Guru Design Patterns", "url": "https://refactoring.guru/design-patterns", "type": "article"},
            ]),
        ],
    },
    {
        "title": "Data Scientist",
        "category": "Data Science",
        "description": "Statistics, SQL and machine learning fundamentals.",
        "icon": "chart",
        "paths": [
            ("SQL for Analytics", "Joins, window functions and aggregation.", [
                {"title": "Mode SQL Tutorial", "url": "https://mode.com/sql-tutorial/", "type": "course"},
            ]),
            ("Probability and Statistics", "Hypothesis testing and distributions.", [
                {"title": "Khan Academy Statistics", "url": "https://www.khanacademy.org/math/statistics-probability", "type": "course"},
            ]),
            ("Machine Learning Basics", "Regression, classification and evaluation.", [
                {"title": "scikit-learn User Guide", "url": "https://scikit-learn.org/stable/user_guide.html", "type": "docs"},
            ]),
        ],
    },
    {
        "title": "Frontend Developer",
        "category": "Full Stack Development",
        "description": "Browser fundamentals, JavaScript and component frameworks.",
        "icon": "layout",
        "paths": [
            ("JavaScript Fundamentals", "Closures, the event loop and promises.", [
                {"title": "javascript.info", "url": "https://javascript.info/", "type": "article"},
            ]),
            ("Web Performance", "Rendering pipeline and loading strategies.", [
                {"title": "web.dev Learn Performance", "url": "https://web.dev/learn/performance", "type": "course"},
            ]),
        ],
    },
    {
        "title": "Cloud / DevOps Engineer",
        "category": "DevOps",
        "description": "Linux, networking, containers and CI/CD pipelines.",
        "icon": "cloud",
        "paths": [
            ("Linux and Networking", "Processes, permissions, DNS and HTTP.", [
                {"title": "Linux Journey", "url": "https://linuxjourney.com/", "type": "course"},
            ]),
            ("Containers and Orchestration", "Docker images and Kubernetes objects.", [
                {"title": "Kubernetes Basics", "url": "https://kubernetes.io/docs/tutorials/kubernetes-basics/", "type": "docs"},
            ]),
        ],
    },
]


def seed_reference_data():
    """Insert job profiles and learning paths if none exist yet"""
    try:
        if db.session.query(JobProfile).count() > 0:
            return

        for profile_data in JOB_PROFILES:
            job_profile = JobProfile(
                title=profile_data["title"],
                category=profile_data["category"],
                description=profile_data["description"],
                icon=profile_data["icon"],
            )
            db.session.add(job_profile)
            db.session.flush()

            for priority, (title, description, resources) in enumerate(profile_data["paths"], start=1):
                db.session.add(LearningPath(
                    job_profile_id=job_profile.id,
                    title=title,
                    description=description,
                    priority=priority,
                    resources=resources,
                ))

        db.session.commit()
        logging.info(f"Seeded {len(JOB_PROFILES)} job profiles")
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error seeding reference data: {e}")
