EXTRACT_CV_PROMPT = """You are an information extractor for CVs / résumés.
Given the CV below, return strict JSON with keys:
total_years_experience, employment_history, job_changes_frequency,
roles_positions, skills, dominant_industries, contact_info, education.

- employment_history: list of objects with company, position, start_date,
  end_date, duration_months, description. Dates as "YYYY-MM"; end_date null
  for the current job. Most recent job first.
- job_changes_frequency: number of job changes per year of experience.
- roles_positions: every job title held.
- skills: technologies, tools and professional skills, as written in the CV.
- dominant_industries: industries worked in, most dominant first.
- contact_info: object with email, phone, location.
- education: list of objects with institution, degree, field, graduation_year.
- If unknown, use null or an empty list. Do not invent data.

CV:
{doc}
"""
