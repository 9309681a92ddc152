SYSTEM_PROMPT = """You are an expert ATS (Applicant Tracking System), resume coach and interview coach.
You always answer by calling the provided tool exactly once, with arguments that match its input schema exactly.
Every free-text value you produce must be written in {language}."""


ANALYSIS_PROMPT = """Analyze the following CV against the provided job description.

IMPORTANT: Provide ALL output in {language}.

JOB DESCRIPTION:
{job_description}

TARGET COMPANY:
{company}

CV CONTENT:
{cv_text}

Rules:
- score is an integer from 0 to 100 measuring how well the CV matches the job description.
- status is "excellent" (score 80+), "good" (60-79) or "needs-improvement" (below 60).
- jobDescriptionSummary is a concise summary of the job description, maximum 3 sentences.
- If the company is not explicitly mentioned in the job description, use "{company}".
- keywords.found lists job-description keywords present in the CV; keywords.missing lists important ones that are absent.
- Score each of the four sections (format, content, keywords, experience) from 0 to 100 with specific feedback.
Be critical but constructive."""


SUMMARY_PROMPT = """Based on the user's CV and the target job description, write 3 distinct professional summary options for the CV.

Option 1: Professional (safe, standard corporate tone, polished)
Option 2: Achievement based (focus on metrics, results and action verbs)
Option 3: Creative (showcasing personality, passion and potential)

Return the options in exactly that order. Each summary should be about 3-5 sentences long.
IMPORTANT: Provide ALL output in {language}.

JOB DESCRIPTION:
{job_description}

TARGET COMPANY:
{company}

CV CONTENT:
{cv_text}"""


COVER_LETTER_PROMPT = """Write a persuasive cover letter for the user based on their CV and the job description.

The tone should be professional, confident and enthusiastic.

IMPORTANT:
1. Provide ALL output in {language}.
2. Customize the letter specifically for the company: "{company}".
3. Highlight key achievements from the CV that match the job description.
4. Keep it concise (about 300-400 words).
5. Also provide exactly 4 strength points explaining why this cover letter is effective
   (e.g. "Mentions a specific company value", "Quantified achievement in paragraph 2").

JOB DESCRIPTION:
{job_description}

CV CONTENT:
{cv_text}

TARGET COMPANY:
{company}"""


INTERVIEW_PROMPT = """Generate 10 interview questions for a candidate applying for:
Job Title: {job_title}
Company: {company}

Distribution (exactly):
- Behavioral: 4 questions (STAR method focus, category "behavioral")
- Technical: 4 questions (based on skills in the job description and CV, category "technical")
- About the company: 2 questions (research focused, category "company")

IMPORTANT:
- Provide ALL output in {language}.
- Questions must be specific to the role and the company.

For each question provide:
1. goodAnswer: a recommended structure, the key points to cover and a specific strong example answer.
2. badAnswer: examples of weak answers and the reasons why they are weak.

JOB DESCRIPTION:
{job_description}

CV CONTENT:
{cv_text}"""
