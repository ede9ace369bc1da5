from __future__ import annotations

from matcher.models import SeedJob

SAMPLE_JOBS: list[dict[str, object]] = [
    {
        "title": "Frontend Developer",
        "company": "TechCorp",
        "location": "New York, NY",
        "description": "Build responsive web applications with React and modern CSS.",
        "skills": ["JavaScript", "React", "HTML", "CSS", "TypeScript"],
        "jobType": "remote",
        "salary": "$90,000 - $120,000",
    },
    {
        "title": "Backend Engineer",
        "company": "DataSystems",
        "location": "San Francisco, CA",
        "description": "Design and maintain Python APIs backed by relational databases.",
        "skills": ["Python", "Django", "SQL", "PostgreSQL", "Docker"],
        "jobType": "onsite",
        "salary": "$110,000 - $140,000",
    },
    {
        "title": "Full Stack Developer",
        "company": "WebSolutions",
        "location": "Austin, TX",
        "description": "Ship features end to end across a Node.js and React stack.",
        "skills": ["JavaScript", "Node.js", "React", "MongoDB", "Express"],
        "jobType": "remote",
        "salary": "$100,000 - $130,000",
    },
    {
        "title": "Data Scientist",
        "company": "AnalyticsPro",
        "location": "Boston, MA",
        "description": "Build predictive models and communicate findings to stakeholders.",
        "skills": ["Python", "Machine Learning", "SQL", "Pandas", "Statistics"],
        "jobType": "onsite",
        "salary": "$120,000 - $150,000",
    },
    {
        "title": "DevOps Engineer",
        "company": "CloudNine",
        "location": "Seattle, WA",
        "description": "Own CI/CD pipelines and cloud infrastructure automation.",
        "skills": ["AWS", "Docker", "Kubernetes", "Terraform", "Linux"],
        "jobType": "remote",
        "salary": "$115,000 - $145,000",
    },
    {
        "title": "Mobile Developer",
        "company": "AppWorks",
        "location": "Chicago, IL",
        "description": "Build cross-platform mobile apps for consumer products.",
        "skills": ["React Native", "JavaScript", "iOS", "Android", "TypeScript"],
        "jobType": "hybrid",
        "salary": "$95,000 - $125,000",
    },
]


def sample_jobs() -> list[SeedJob]:
    return [SeedJob.model_validate(job) for job in SAMPLE_JOBS]
