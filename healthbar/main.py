"""
Backend service entrypoints.

Run locally:  uvicorn healthbar.main:patient_app --port 8002
         or:  python -m healthbar.main patient
"""

import argparse

import uvicorn

from healthbar.api import auth, doctors, patients, prescriptions, timeline
from healthbar.api.factory import create_service_app
from healthbar.config import settings

auth_app = create_service_app("auth", auth.public_router, auth.router)
patient_app = create_service_app("patient", patients.router)
doctor_app = create_service_app("doctor", doctors.router)
timeline_app = create_service_app("timeline", timeline.router)
prescription_app = create_service_app("prescription", prescriptions.router)

SERVICES = {
    "auth": ("healthbar.main:auth_app", 8001),
    "patient": ("healthbar.main:patient_app", 8002),
    "doctor": ("healthbar.main:doctor_app", 8003),
    "timeline": ("healthbar.main:timeline_app", 8004),
    "prescription": ("healthbar.main:prescription_app", 8005),
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run one Health Bar backend service.")
    parser.add_argument("service", choices=sorted(SERVICES))
    parser.add_argument("--host", default="0.0.0.0")
    args = parser.parse_args(argv)

    target, default_port = SERVICES[args.service]
    port = int(settings.PORT or default_port)
    uvicorn.run(target, host=args.host, port=port, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
