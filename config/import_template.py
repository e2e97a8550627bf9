"""Example rows for the downloadable bulk-import template.

Two direct company postings and one consultancy posting. Column order here is
the column order of the generated file.
"""

TEMPLATE_ROWS = [
    {
        "title": "Senior Software Engineer",
        "description": (
            "We are looking for a highly skilled Senior Software Engineer to lead our development team. "
            "The ideal candidate will have extensive experience in full-stack development and a strong "
            "understanding of scalable architectures."
        ),
        "location": "Mumbai, Maharashtra",
        "city": "Mumbai",
        "state": "Maharashtra",
        "country": "India",
        "region": "india",  # india | gulf | other
        "jobType": "full-time",  # full-time | part-time | contract
        "type": "full-time",
        "experienceLevel": "senior",  # entry | junior | mid | senior
        "experience": "senior",
        "experienceMin": 5,
        "experienceMax": 10,
        "salary": "30-40 LPA",  # "min-max LPA" or raw rupees "3000000-4000000"
        "salaryMin": 30,  # LPA figures are converted to rupees on import
        "salaryMax": 40,
        "salaryCurrency": "INR",
        "salaryPeriod": "yearly",  # yearly | monthly | hourly
        "department": "Engineering - Software & QA",
        "category": "Technology",
        "industryType": "Software Product (532)",
        "roleCategory": "Software Development",
        "role": "Senior Software Engineer",
        "employmentType": "Full Time, Permanent",
        "skills": "JavaScript,React,Node.js,TypeScript,PostgreSQL,AWS,Docker,Kubernetes",
        "requirements": (
            "Bachelor's or Master's degree in Computer Science or related field, "
            "5+ years of experience in software development, Proven leadership skills"
        ),
        "responsibilities": (
            "Lead a team of software engineers,Design and implement scalable software solutions,"
            "Mentor junior developers,Collaborate with product and design teams"
        ),
        "remoteWork": "hybrid",  # on-site | remote | hybrid
        "shiftTiming": "day",  # day | night | rotating
        "education": "Bachelor's Degree",
        "benefits": "Health Insurance,401k,Remote Work,Paid Time Off,Performance Bonus,Learning Budget",
        "tags": "javascript,react,fullstack,senior,leadership",
        "isUrgent": "false",
        "isFeatured": "true",
        "isPremium": "false",
        "validTill": "2027-03-31",
        "applicationDeadline": "2027-03-31",
        "postingType": "company",  # company | consultancy
        "companyName": "Tech Solutions Inc.",
        "hiringCompanyName": "",
        "hiringCompanyIndustry": "",
        "hiringCompanyDescription": "",
        "showHiringCompanyDetails": "false",
    },
    {
        "title": "Marketing Manager",
        "description": (
            "We are seeking a dynamic Marketing Manager to develop and execute comprehensive marketing "
            "strategies. This role requires a creative thinker with strong analytical skills and a proven "
            "track record in digital marketing."
        ),
        "location": "Delhi, NCR",
        "city": "Delhi",
        "state": "Delhi",
        "country": "India",
        "region": "india",
        "jobType": "full-time",
        "type": "full-time",
        "experienceLevel": "mid",
        "experience": "mid",
        "experienceMin": 3,
        "experienceMax": 7,
        "salary": "8-12 LPA",
        "salaryMin": 8,
        "salaryMax": 12,
        "salaryCurrency": "INR",
        "salaryPeriod": "yearly",
        "department": "Marketing & Communication",
        "category": "Marketing",
        "industryType": "Internet (246)",
        "roleCategory": "Marketing",
        "role": "Marketing Manager",
        "employmentType": "Full Time, Permanent",
        "skills": "Digital Marketing,SEO,SEM,Content Marketing,Social Media,Analytics,Team Management",
        "requirements": (
            "Bachelor's degree in Marketing or Business, 3+ years of experience in marketing management, "
            "Strong communication and leadership skills"
        ),
        "responsibilities": (
            "Develop and implement marketing campaigns,Manage digital marketing channels,"
            "Analyze market trends and competitor activities,Oversee content creation"
        ),
        "remoteWork": "remote",
        "shiftTiming": "day",
        "education": "Bachelor's Degree",
        "benefits": "Health Insurance,Performance Bonus,Professional Development,Paid Time Off,Work from Home",
        "tags": "marketing,digital,seo,content,strategy",
        "isUrgent": "false",
        "isFeatured": "false",
        "isPremium": "false",
        "validTill": "2027-03-31",
        "applicationDeadline": "2027-03-31",
        "postingType": "company",
        "companyName": "Global Marketing Agency",
        "hiringCompanyName": "",
        "hiringCompanyIndustry": "",
        "hiringCompanyDescription": "",
        "showHiringCompanyDetails": "false",
    },
    {
        "title": "Senior Developer (via Consultancy)",
        "description": (
            "A leading consultancy is seeking a Senior Developer for one of our premium clients. This is an "
            "excellent opportunity to work with cutting-edge technology in a dynamic environment."
        ),
        "location": "Bangalore, Karnataka",
        "city": "Bangalore",
        "state": "Karnataka",
        "country": "India",
        "region": "india",
        "jobType": "full-time",
        "type": "full-time",
        "experienceLevel": "senior",
        "experience": "senior",
        "experienceMin": 5,
        "experienceMax": 10,
        "salary": "15-25 LPA",
        "salaryMin": 1500000,  # raw rupees are kept as they are
        "salaryMax": 2500000,
        "salaryCurrency": "INR",
        "salaryPeriod": "yearly",
        "department": "Engineering - Software & QA",
        "category": "Technology",
        "industryType": "Software Product (532)",
        "roleCategory": "Software Development",
        "role": "Senior Developer",
        "employmentType": "Full Time, Permanent",
        "skills": "Java,Spring Boot,Microservices,AWS,React,TypeScript",
        "requirements": "Bachelor's degree in Computer Science, 5+ years of experience in software development",
        "responsibilities": (
            "Develop and maintain enterprise applications,Lead technical initiatives,"
            "Collaborate with cross-functional teams"
        ),
        "remoteWork": "hybrid",
        "shiftTiming": "day",
        "education": "Bachelor's Degree",
        "benefits": "Health Insurance,Performance Bonus,Learning Budget",
        "tags": "java,spring,microservices,consultancy",
        "isUrgent": "false",
        "isFeatured": "false",
        "isPremium": "false",
        "validTill": "2027-03-31",
        "applicationDeadline": "2027-03-31",
        "postingType": "consultancy",
        # The consultancy name is always the uploading company's own name; there is no column for it.
        "companyName": "",
        "hiringCompanyName": "Fortune 500 Tech Corp",
        "hiringCompanyIndustry": "Software Product (532)",
        "hiringCompanyDescription": "A leading software product company with global presence",
        "showHiringCompanyDetails": "true",
    },
]

# Paid hot-vacancy options; the bulk-import template must never offer them.
HOT_VACANCY_FIELDS = frozenset({
    "isHotVacancy",
    "urgentHiring",
    "multipleEmailIds",
    "boostedSearch",
    "searchBoostLevel",
    "citySpecificBoost",
    "videoBanner",
    "whyWorkWithUs",
    "companyReviews",
    "autoRefresh",
    "refreshDiscount",
    "attachmentFiles",
    "officeImages",
    "companyProfile",
    "proactiveAlerts",
    "alertRadius",
    "alertFrequency",
    "featuredKeywords",
    "customBranding",
    "superFeatured",
    "tierLevel",
    "externalApplyUrl",
    "hotVacancyPrice",
    "hotVacancyCurrency",
    "hotVacancyPaymentStatus",
    "urgencyLevel",
    "hiringTimeline",
    "maxApplications",
    "pricingTier",
    "price",
    "currency",
    "paymentId",
    "paymentDate",
    "priorityListing",
    "featuredBadge",
    "unlimitedApplications",
    "advancedAnalytics",
    "candidateMatching",
    "directContact",
    "seoTitle",
    "seoDescription",
    "keywords",
    "impressions",
    "clicks",
})
