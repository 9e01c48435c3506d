from __future__ import annotations

# Storage layout every uploaded file shares. Agents never see native columns.
ROW_STORE_DIALECT_NOTES = """
ROW STORE LAYOUT (PostgreSQL)

All uploaded CSV data lives in ONE table: uploaded_rows
- file_id: UUID (identifies which file a row came from)
- row_data: JSONB (each CSV row as key-value pairs; keys are the CSV headers)

Reading values:
- row_data->>'Column Name' returns TEXT for every column, whatever its logical type
- Numbers MUST be cast before arithmetic, aggregation, comparison or ordering:
  (row_data->>'Salary')::NUMERIC
- Dates are text as well: (row_data->>'Start Date')::DATE when the format allows it
- Empty cells come back as '' (empty string), not NULL: use NULLIF(row_data->>'X', '')
  before casting

Filtering by file:
- Always restrict each file's rows with WHERE file_id = '<file_id>'
""".strip()
