"""
Built-in Tools

Interview-prep tools offered to the assistant. Search-backed tools need a
configured search provider; crawling tools are metered by the quota guard,
which is checked before a crawl and charged only for successful pages.
"""

import re
import time
import uuid
from typing import Any, Dict, List, Optional

from interviewprep_core.integrations.base import CrawlOptions, CrawlResult
from interviewprep_core.llm.tools import (
    ParameterType,
    Tool,
    ToolContext,
    ToolDescriptor,
    ToolExecutionError,
    ToolParameter,
    ToolRegistry,
    ToolServices,
)
from interviewprep_core.quota.base import CrawlLogRecord, CrawlStatus
from interviewprep_core.tiers.base import Plan

PAID_PLANS = frozenset({Plan.PRO, Plan.MAX})
MAX_ONLY = frozenset({Plan.MAX})


def _crawl_priority(plan: Plan) -> int:
    return 8 if plan == Plan.MAX else 5


def _snippets(results, with_url: bool = False) -> str:
    if with_url:
        return "\n".join(f"{r.title} ({r.url}): {r.snippet}" for r in results)
    return "\n".join(f"{r.title}: {r.snippet}" for r in results)


async def _search_text(ctx: ToolContext, query: str, max_results: int, with_url: bool = False) -> str:
    """Search snippets as text, empty when search is unavailable."""
    if ctx.services.search is None:
        return ""
    response = await ctx.services.search.query(query, max_results)
    return _snippets(response.results, with_url=with_url)


async def _log_crawl(
    ctx: ToolContext,
    urls: List[str],
    results: List[CrawlResult],
    started: float,
) -> None:
    quota = ctx.services.quota
    if quota is None:
        return
    successes = sum(1 for r in results if r.success)
    if successes == len(results):
        status = CrawlStatus.SUCCESS
    elif successes:
        status = CrawlStatus.PARTIAL
    else:
        status = CrawlStatus.FAILED
    errors = [r.error for r in results if r.error]
    await quota.log_crawl(CrawlLogRecord(
        user_id=ctx.request.user_id,
        request_id=ctx.request.request_id or f"crawl-{uuid.uuid4().hex[:12]}",
        urls=urls,
        plan=ctx.request.plan,
        status=status,
        result_count=successes,
        crawl_time_ms=int((time.monotonic() - started) * 1000),
        error_message="; ".join(errors) or None,
    ))


# searchWeb

async def search_web(args: Dict[str, Any], ctx: ToolContext) -> List[Dict[str, Any]]:
    response = await ctx.services.search.query(args["query"], int(args["maxResults"]))
    return [r.to_dict() for r in response.results]


SEARCH_WEB = ToolDescriptor(
    id="searchWeb",
    display_name="Web Search",
    description=(
        "Search the web for current information about technologies, interview topics, "
        "companies, or job market trends."
    ),
    parameters=[
        ToolParameter("query", ParameterType.STRING, "The search query"),
        ToolParameter(
            "maxResults", ParameterType.INTEGER, "Maximum number of results to return",
            required=False, default=5, minimum=1, maximum=10,
        ),
    ],
    plans=PAID_PLANS,
    requires_search=True,
)


# crawlWeb

async def crawl_web(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    url = args["url"]
    extraction = args.get("extractionType", "full")
    quota = ctx.services.quota
    plan = ctx.request.plan

    check = await quota.check(ctx.request.user_id, plan, 1)
    if not check.allowed:
        raise ToolExecutionError(
            check.message or "Crawl quota exceeded",
            payload={
                "success": False,
                "error": check.message,
                "quotaInfo": {"remaining": check.remaining, "limit": check.limit},
            },
        )

    started = time.monotonic()
    result = await ctx.services.crawl.crawl_url(
        url,
        CrawlOptions(
            priority=_crawl_priority(plan),
            include_raw_html=extraction == "full",
            timeout_ms=30000,
        ),
    )
    if result.success:
        await quota.consume(ctx.request.user_id, plan, 1)
    await _log_crawl(ctx, [url], [result], started)

    if not result.success:
        raise ToolExecutionError(
            f"Failed to crawl URL: {result.error}",
            payload={"success": False, "url": url, "error": result.error},
        )

    if extraction == "markdown-only":
        return {"success": True, "url": result.url, "markdown": result.markdown}
    if extraction == "metadata-only":
        return {"success": True, "url": result.url, "metadata": result.metadata}
    return {
        "success": True,
        "url": result.url,
        "markdown": result.markdown,
        "metadata": result.metadata,
        "links": result.links,
        "media": result.media if args.get("includeImages") else None,
        "crawlTimeMs": result.crawl_time_ms,
    }


CRAWL_WEB = ToolDescriptor(
    id="crawlWeb",
    display_name="Web Crawler",
    description=(
        "Crawl and extract full content from web pages. Use this when you need the complete "
        "article/page content, not just search snippets. Returns markdown, metadata, links, "
        "and images."
    ),
    parameters=[
        ToolParameter("url", ParameterType.STRING, "The URL to crawl and extract content from", format="uri"),
        ToolParameter(
            "extractionType", ParameterType.STRING, "Type of content to extract",
            required=False, default="full", enum=["full", "markdown-only", "metadata-only"],
        ),
        ToolParameter(
            "includeImages", ParameterType.BOOLEAN, "Whether to include image information",
            required=False, default=False,
        ),
    ],
    plans=PAID_PLANS,
    requires_quota=True,
    requires_crawl=True,
)


# searchAndCrawl

async def search_and_crawl(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    query = args["query"]
    crawl_top = int(args.get("crawlTopResults", 1))
    plan = ctx.request.plan

    response = await ctx.services.search.query(query, 5)
    results = response.results
    if not results:
        return {"searchResults": [], "crawledContent": [], "message": "No search results found"}

    search_results = [r.to_dict() for r in results]
    quota = ctx.services.quota
    if crawl_top == 0 or ctx.services.crawl is None:
        return {
            "searchResults": search_results,
            "crawledContent": [],
            "message": f"Found {len(results)} search results",
        }

    check = await quota.check(ctx.request.user_id, plan, crawl_top)
    if not check.allowed:
        return {
            "searchResults": search_results,
            "crawledContent": [],
            "quotaExceeded": True,
            "message": f"Found {len(results)} results. {check.message}",
        }

    started = time.monotonic()
    urls = [r.url for r in results[:crawl_top]]
    crawled: List[Dict[str, Any]] = []
    crawl_results: List[CrawlResult] = []
    for hit in results[:crawl_top]:
        page = await ctx.services.crawl.crawl_url(
            hit.url,
            CrawlOptions(priority=_crawl_priority(plan), timeout_ms=15000),
        )
        crawl_results.append(page)
        if page.success and page.markdown:
            crawled.append({
                "url": hit.url,
                "title": hit.title or page.metadata.get("title") or hit.url,
                "markdown": page.markdown,
            })
        else:
            crawled.append({
                "url": hit.url,
                "title": hit.title or hit.url,
                "error": page.error or "Failed to crawl",
            })

    successful = sum(1 for c in crawled if c.get("markdown"))
    if successful:
        await quota.consume(ctx.request.user_id, plan, successful)
    await _log_crawl(ctx, urls, crawl_results, started)

    return {
        "searchResults": search_results,
        "crawledContent": crawled,
        "message": f"Found {len(results)} results, crawled {successful} pages",
    }


SEARCH_AND_CRAWL = ToolDescriptor(
    id="searchAndCrawl",
    display_name="Search & Crawl",
    description=(
        "Search the web for information and optionally crawl top results for full content. "
        "This is the recommended tool for comprehensive research."
    ),
    parameters=[
        ToolParameter("query", ParameterType.STRING, "The search query to find relevant information"),
        ToolParameter(
            "crawlTopResults", ParameterType.INTEGER,
            "Number of top search results to crawl for full content (0-3)",
            required=False, default=1, minimum=0, maximum=3,
        ),
    ],
    plans=PAID_PLANS,
    requires_quota=True,
    requires_search=True,
)


# analyzeTechTrends

async def analyze_tech_trends(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    technologies = list(args["technologies"])[:5]
    focus = args.get("focusArea", "all")
    query = f"{' '.join(technologies)} technology trends job market demand"
    return {
        "technologies": technologies,
        "focusArea": focus,
        "searchData": await _search_text(ctx, query, 5),
        "analysisReady": True,
    }


ANALYZE_TECH_TRENDS = ToolDescriptor(
    id="analyzeTechTrends",
    display_name="Tech Trends",
    description=(
        "Analyze technology trends, job market demand, and career prospects for specific "
        "technologies. You MUST provide a 'technologies' array with 1-5 technology names."
    ),
    parameters=[
        ToolParameter(
            "technologies", ParameterType.ARRAY, "Technology names to analyze (1-5 items)",
            items={"type": "string"}, min_items=1, max_items=5,
        ),
        ToolParameter(
            "focusArea", ParameterType.STRING, "Specific area to focus on",
            required=False, default="all", enum=["job-market", "skills", "salary", "growth", "all"],
        ),
    ],
    plans=PAID_PLANS,
)


# generateInterviewQuestions

async def generate_interview_questions(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    interview = ctx.request.interview
    role = interview.job_title if interview else args["role"]
    company = (interview.company if interview else None) or args.get("company")
    return {
        "role": role,
        "company": company or "General",
        "type": args["type"],
        "count": int(args.get("count", 5)),
        "difficulty": args.get("difficulty", "mid"),
        "contextUsed": interview is not None,
    }


GENERATE_INTERVIEW_QUESTIONS = ToolDescriptor(
    id="generateInterviewQuestions",
    display_name="Mock Interview",
    description="Generate tailored interview questions based on role, company, and interview type.",
    parameters=[
        ToolParameter("role", ParameterType.STRING, "The job role to interview for"),
        ToolParameter("company", ParameterType.STRING, "Target company", required=False),
        ToolParameter(
            "type", ParameterType.STRING, "Type of interview questions",
            enum=["behavioral", "technical", "system-design", "mixed"],
        ),
        ToolParameter(
            "count", ParameterType.INTEGER, "Number of questions",
            required=False, default=5, minimum=1, maximum=10,
        ),
        ToolParameter(
            "difficulty", ParameterType.STRING, "Difficulty level",
            required=False, default="mid", enum=["entry", "mid", "senior", "staff"],
        ),
    ],
    plans=PAID_PLANS,
)


# analyzeGitHubRepo

_GITHUB_REPO = re.compile(r"github\.com/([^/]+/[^/]+)")


def parse_repo(repo_url: str) -> str:
    """owner/repo from a GitHub URL, or the input unchanged."""
    match = _GITHUB_REPO.search(repo_url)
    if not match:
        return repo_url
    return re.sub(r"\.git$", "", match.group(1))


async def analyze_github_repo(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    repo = parse_repo(args["repoUrl"])
    return {
        "repo": repo,
        "focus": args.get("focus", "learning"),
        "repoInfo": await _search_text(ctx, f"site:github.com {repo} README technologies", 5),
        "analysisReady": True,
    }


ANALYZE_GITHUB_REPO = ToolDescriptor(
    id="analyzeGitHubRepo",
    display_name="GitHub Analyzer",
    description=(
        "Analyze a GitHub repository to understand its architecture, technologies, and "
        "generate learning insights."
    ),
    parameters=[
        ToolParameter("repoUrl", ParameterType.STRING, "GitHub repository URL or owner/repo format"),
        ToolParameter(
            "focus", ParameterType.STRING, "Focus area for analysis",
            required=False, default="learning",
            enum=["architecture", "interview-prep", "learning", "code-review"],
        ),
    ],
    plans=PAID_PLANS,
)


# generateSystemDesign

async def generate_system_design(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    return {
        "system": args["system"],
        "scale": args.get("scale", "large-scale"),
        "requirements": list(args.get("requirements") or []),
        "designReady": True,
    }


GENERATE_SYSTEM_DESIGN = ToolDescriptor(
    id="generateSystemDesign",
    display_name="System Design",
    description="Generate a comprehensive system design template for interview preparation.",
    parameters=[
        ToolParameter(
            "system", ParameterType.STRING,
            "The system to design (e.g., 'URL shortener', 'Twitter feed')",
        ),
        ToolParameter(
            "scale", ParameterType.STRING, "Target scale",
            required=False, default="large-scale", enum=["startup", "medium", "large-scale"],
        ),
        ToolParameter(
            "requirements", ParameterType.ARRAY, "Specific requirements to address",
            required=False, items={"type": "string"},
        ),
    ],
    plans=MAX_ONLY,
)


# structureSTARResponse

async def structure_star_response(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    return {
        "situation": args["situation"],
        "questionType": args.get("questionType") or "general",
        "structureReady": True,
    }


STRUCTURE_STAR_RESPONSE = ToolDescriptor(
    id="structureSTARResponse",
    display_name="STAR Framework",
    description=(
        "Help structure a behavioral interview answer using the STAR framework "
        "(Situation, Task, Action, Result)."
    ),
    parameters=[
        ToolParameter("situation", ParameterType.STRING, "The situation or experience to structure"),
        ToolParameter(
            "questionType", ParameterType.STRING,
            "Type of behavioral question (e.g., 'leadership', 'conflict')", required=False,
        ),
    ],
    plans=PAID_PLANS,
)


# findLearningResources

async def find_learning_resources(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    learning = ctx.request.learning
    topic = (learning.current_topic if learning else None) or args["topic"]
    level = args["level"]
    prefer_free = bool(args.get("preferFree", True))
    prefer_video = bool(args.get("preferVideo", False))

    terms = [topic, level, "tutorial course documentation"]
    if prefer_free:
        terms.append("free")
    if prefer_video:
        terms.append("video")

    return {
        "topic": topic,
        "level": level,
        "preferences": {"preferFree": prefer_free, "preferVideo": prefer_video},
        "resourceInfo": await _search_text(ctx, " ".join(terms), 8, with_url=True),
        "resourcesReady": True,
    }


FIND_LEARNING_RESOURCES = ToolDescriptor(
    id="findLearningResources",
    display_name="Learning Resources",
    description=(
        "Find curated learning resources for a topic including documentation, tutorials, "
        "videos, and courses."
    ),
    parameters=[
        ToolParameter("topic", ParameterType.STRING, "The topic to find resources for"),
        ToolParameter(
            "level", ParameterType.STRING, "Skill level",
            enum=["beginner", "intermediate", "advanced"],
        ),
        ToolParameter("preferFree", ParameterType.BOOLEAN, "Prefer free resources", required=False, default=True),
        ToolParameter("preferVideo", ParameterType.BOOLEAN, "Prefer video content", required=False, default=False),
    ],
    plans=MAX_ONLY,
)


def _count_summary(key: str):
    def summarize(output: Any) -> Dict[str, Any]:
        return {key: len(output or [])}
    return summarize


def _crawl_summary(output: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": output.get("success"), "contentLength": len(output.get("markdown") or "")}


def _search_and_crawl_summary(output: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "searchResults": len(output.get("searchResults", [])),
        "crawledPages": sum(1 for c in output.get("crawledContent", []) if c.get("markdown")),
        "quotaExceeded": output.get("quotaExceeded", False),
    }


def builtin_tools() -> List[Tool]:
    """All built-in tools bound to their handlers."""
    return [
        Tool(SEARCH_WEB, search_web, summarize=_count_summary("resultCount")),
        Tool(CRAWL_WEB, crawl_web, summarize=_crawl_summary),
        Tool(SEARCH_AND_CRAWL, search_and_crawl, summarize=_search_and_crawl_summary),
        Tool(ANALYZE_TECH_TRENDS, analyze_tech_trends),
        Tool(GENERATE_INTERVIEW_QUESTIONS, generate_interview_questions),
        Tool(ANALYZE_GITHUB_REPO, analyze_github_repo),
        Tool(GENERATE_SYSTEM_DESIGN, generate_system_design),
        Tool(STRUCTURE_STAR_RESPONSE, structure_star_response),
        Tool(FIND_LEARNING_RESOURCES, find_learning_resources),
    ]


def create_default_registry(services: Optional[ToolServices] = None) -> ToolRegistry:
    """Registry holding every built-in tool."""
    return ToolRegistry(builtin_tools(), services=services)


__all__ = [
    "SEARCH_WEB",
    "CRAWL_WEB",
    "SEARCH_AND_CRAWL",
    "ANALYZE_TECH_TRENDS",
    "GENERATE_INTERVIEW_QUESTIONS",
    "ANALYZE_GITHUB_REPO",
    "GENERATE_SYSTEM_DESIGN",
    "STRUCTURE_STAR_RESPONSE",
    "FIND_LEARNING_RESOURCES",
    "builtin_tools",
    "create_default_registry",
    "parse_repo",
]
