from __future__ import annotations

from datetime import date

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from studio_analytics.config.settings import get_settings


def session_row(**overrides) -> dict:
    row = {
        "sessionId": "S1",
        "sessionName": "Morning Ride",
        "date": "15/01/2024",
        "time": "07:00",
        "dayOfWeek": "Monday",
        "location": "Kwality House",
        "trainerId": "T1",
        "trainerName": "Anisha Shah",
        "classType": "",
        "cleanedClass": "Studio PowerCycle",
        "capacity": 10,
        "checkedInCount": 6,
        "bookedCount": 8,
        "lateCancelledCount": 1,
        "complimentaryCount": 0,
        "nonPaidCount": 0,
        "totalPaid": 1000,
        "checkedInsWithMemberships": 4,
        "checkedInsWithPackages": 1,
        "checkedInsWithIntroOffers": 0,
        "checkedInsWithSingleClasses": 0,
    }
    row.update(overrides)
    return row


def payroll_row(**overrides) -> dict:
    row = {
        "teacherId": "T1",
        "teacherName": "Anisha Shah",
        "teacherEmail": "anisha@example.com",
        "location": "Kwality House",
        "monthYear": "Jan 2024",
        "cycleSessions": 6,
        "emptyCycleSessions": 1,
        "nonEmptyCycleSessions": 5,
        "cycleCustomers": 40,
        "cyclePaid": 30000,
        "barreSessions": 4,
        "emptyBarreSessions": 0,
        "nonEmptyBarreSessions": 4,
        "barreCustomers": 20,
        "barrePaid": 10000,
        "strengthSessions": 0,
        "emptyStrengthSessions": 0,
        "nonEmptyStrengthSessions": 0,
        "strengthCustomers": 0,
        "strengthPaid": 0,
        "totalSessions": 10,
        "totalEmptySessions": 1,
        "totalNonEmptySessions": 9,
        "totalCustomers": 60,
        "totalPaid": 40000,
        "unique": "",
        "converted": 2,
        "conversion": "40%",
        "retained": 3,
        "retention": "60%",
        "new": 5,
    }
    row.update(overrides)
    return row


def client_row(**overrides) -> dict:
    row = {
        "memberId": "M1",
        "firstName": "Riya",
        "lastName": "Kapoor",
        "email": "riya@example.com",
        "firstVisitDate": "10/01/2024",
        "firstVisitEntityName": "Intro Ride",
        "firstVisitType": "Trial",
        "firstVisitLocation": "Kwality House",
        "homeLocation": "Kwality House",
        "paymentMethod": "Card",
        "membershipUsed": "Newcomer 2 for 1",
        "trainerName": "Anisha Shah",
        "isNew": "New",
        "visitsPostTrial": 0,
        "purchaseCountPostTrial": 0,
        "ltv": 0,
        "retentionStatus": "Not Retained",
        "conversionStatus": "Not Converted",
        "firstPurchase": "",
        "conversionSpan": 0,
        "classNo": 1,
    }
    row.update(overrides)
    return row


@pytest.fixture
def sessions() -> pd.DataFrame:
    return pd.DataFrame(
        [
            session_row(sessionId="S1", cleanedClass="Studio PowerCycle", capacity=10, checkedInCount=8, date="15/01/2024"),
            session_row(sessionId="S2", cleanedClass="Studio PowerCycle", capacity=10, checkedInCount=4, date="16/01/2024"),
            session_row(
                sessionId="S3",
                cleanedClass="Studio Barre 57",
                capacity=20,
                checkedInCount=0,
                bookedCount=0,
                lateCancelledCount=0,
                totalPaid=0,
                checkedInsWithMemberships=0,
                checkedInsWithPackages=0,
                trainerName="Mrigakshi Jaiswal",
                time="18:00",
                date="05/02/2024",
            ),
        ]
    )


@pytest.fixture
def payroll() -> pd.DataFrame:
    return pd.DataFrame(
        [
            payroll_row(),
            payroll_row(monthYear="Feb 2024", totalPaid=50000, cyclePaid=40000, totalCustomers=70, conversion="50%", retention="70%"),
            payroll_row(
                teacherId="T2",
                teacherName="Vivaran Dhasmana",
                location="Supreme HQ",
                monthYear="Jan 2023",
                totalPaid=20000,
                cyclePaid=20000,
                barrePaid=0,
                totalCustomers=30,
                conversion="20%",
                retention="30%",
            ),
        ]
    )


@pytest.fixture
def clients() -> pd.DataFrame:
    return pd.DataFrame(
        [
            client_row(
                memberId="M1",
                conversionStatus="Converted",
                retentionStatus="Retained",
                ltv=12000,
                firstPurchase="15/01/2024",
                visitsPostTrial=4,
            ),
            client_row(memberId="M2", firstVisitDate="20/01/2024", ltv=0, homeLocation="Supreme HQ", firstVisitLocation="Supreme HQ"),
            client_row(
                memberId="M3",
                firstVisitDate="03/02/2024",
                isNew="Returning",
                trainerName="Vivaran Dhasmana",
                membershipUsed="Single Class",
                ltv=3000,
                visitsPostTrial=2,
            ),
            client_row(memberId="M4", firstVisitDate="not recorded", trainerName="Vivaran Dhasmana", ltv=500),
        ]
    )


@pytest.fixture
def today() -> date:
    return date(2024, 3, 10)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("STUDIO_DATA_DIR", str(tmp_path / "db"))
    monkeypatch.setenv("STUDIO_OUTPUT_DIR", str(tmp_path / "output"))
    return get_settings()
