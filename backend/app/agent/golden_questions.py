from __future__ import annotations

# Golden questions for UI examples / guidelines.
# NOTE: these are NOT used in runtime prompting; they are for demo UX only.
# They target the seeded HR demo files (see data/seed_demo_files.py).

GOLDEN = [
    # === SINGLE FILE ===
    {
        "question": "How many employees are in each department?",
        "expected": "One row per DepartmentType with a COUNT. employee_data.csv only, no join.",
        "tests": "single_file_query=true, GROUP BY on a dimension column",
    },
    {
        "question": "What is the average current employee rating by title?",
        "expected": "AVG over Current Employee Rating cast to NUMERIC, grouped by Title.",
        "tests": "NUMERIC cast of JSONB text, NULLIF for empty strings",
    },
    {
        "question": "What percentage of employees are in each employee status?",
        "expected": "Share per EmployeeStatus summing to ~100%. Pie chart picked without a model call.",
        "tests": "PERCENTAGE_BREAKDOWN template + pie heuristic",
    },
    {
        "question": "Show the trend of training cost by training date",
        "expected": "SUM(Training Cost) per Training Date, ordered by date. Line chart.",
        "tests": "Date column handling + line heuristic",
    },
    {
        "question": "What is the average desired salary by education level?",
        "expected": "recruitment_data.csv only, AVG(Desired Salary) by Education Level.",
        "tests": "Currency noise stripped before the NUMERIC cast",
    },

    # === CROSS FILE ===
    {
        "question": "What is the average engagement score by department?",
        "expected": "employee_data.EmpID joined to employee_engagement_survey_data.Employee ID, AVG(Engagement Score) by DepartmentType.",
        "tests": "Fuzzy join key EmpID <-> Employee ID, LOWER(TRIM()) on both sides",
    },
    {
        "question": "Which departments spend the most on training?",
        "expected": "employee_data joined to training_and_development_data on Employee ID, SUM(Training Cost) by DepartmentType, DESC.",
        "tests": "Cross-file aggregate + ORDER BY metric",
    },
    {
        "question": "Compare satisfaction score and work-life balance score by performance score",
        "expected": "Two AVG metrics from the survey grouped by Performance Score from employee_data.",
        "tests": "Multiple metrics in one query, grouped bar chart",
    },
    {
        "question": "How does training outcome relate to current employee rating?",
        "expected": "Training Outcome groups with AVG(Current Employee Rating).",
        "tests": "Dimension from one file, metric from the other",
    },
]
