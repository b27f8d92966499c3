from __future__ import annotations

UNKNOWN = "Unknown"

CONVERTED = "Converted"
RETAINED = "Retained"
NEW_MARKER = "new"

VIEW_MODES = ("top", "bottom", "all")

# Substring keywords used to bucket a class format into a family.
FORMAT_FAMILIES = {
    "Cycle": ["cycle"],
    "Barre": ["barre"],
    "Strength": ["strength"],
}

# Per-session fill-rate bands (percent) used by the efficiency table.
UNDERUTILIZED_BELOW = 50
OPTIMIZED_RANGE = (70, 90)
OVERSOLD_ABOVE = 90

EFFICIENCY_WEIGHTS = {
    "optimized": 100,
    "oversold": 90,
    "underutilized": 40,
}

PERFORMANCE_BANDS = [
    (80, "Excellent", "Maintain current performance"),
    (60, "Good", "Minor optimizations needed"),
]
PERFORMANCE_FALLBACK = ("Needs Improvement", "Major improvements required")

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

SESSION_NUMERIC_COLUMNS = [
    "capacity",
    "checkedInCount",
    "bookedCount",
    "lateCancelledCount",
    "complimentaryCount",
    "nonPaidCount",
    "totalPaid",
    "checkedInsWithMemberships",
    "checkedInsWithPackages",
    "checkedInsWithIntroOffers",
    "checkedInsWithSingleClasses",
]
SESSION_TEXT_COLUMNS = [
    "sessionId",
    "sessionName",
    "date",
    "time",
    "dayOfWeek",
    "location",
    "trainerId",
    "trainerName",
    "classType",
    "cleanedClass",
]

PAYROLL_NUMERIC_COLUMNS = [
    "cycleSessions",
    "emptyCycleSessions",
    "nonEmptyCycleSessions",
    "cycleCustomers",
    "cyclePaid",
    "strengthSessions",
    "emptyStrengthSessions",
    "nonEmptyStrengthSessions",
    "strengthCustomers",
    "strengthPaid",
    "barreSessions",
    "emptyBarreSessions",
    "nonEmptyBarreSessions",
    "barreCustomers",
    "barrePaid",
    "totalSessions",
    "totalEmptySessions",
    "totalNonEmptySessions",
    "totalCustomers",
    "totalPaid",
    "converted",
    "retained",
    "new",
]
# Kept as text: may carry a "%" suffix.
PAYROLL_TEXT_COLUMNS = [
    "teacherId",
    "teacherName",
    "teacherEmail",
    "location",
    "monthYear",
    "unique",
    "conversion",
    "retention",
]

CLIENT_NUMERIC_COLUMNS = [
    "visitsPostTrial",
    "purchaseCountPostTrial",
    "ltv",
    "conversionSpan",
    "classNo",
]
CLIENT_TEXT_COLUMNS = [
    "memberId",
    "firstName",
    "lastName",
    "email",
    "firstVisitDate",
    "firstVisitEntityName",
    "firstVisitType",
    "firstVisitLocation",
    "homeLocation",
    "paymentMethod",
    "membershipUsed",
    "trainerName",
    "isNew",
    "retentionStatus",
    "conversionStatus",
    "firstPurchase",
]

METRIC_LABELS = {
    "totalSessions": "Sessions",
    "totalCheckedIn": "Attendance",
    "totalRevenue": "Revenue",
    "fillRate": "Fill Rate",
    "showUpRate": "Show-up Rate",
    "utilizationRate": "Utilization",
    "avgRevenue": "Avg Revenue/Session",
    "efficiencyScore": "Efficiency Score",
    "conversionRate": "Conversion %",
    "retentionRate": "Retention %",
    "avgLTV": "Avg LTV",
    "totalAttendance": "Attendance",
    "totalCapacity": "Capacity",
    "avgFillRate": "Avg Fill Rate",
    "avgSessionSize": "Avg Class Size",
    "emptySessions": "Empty Sessions",
}
