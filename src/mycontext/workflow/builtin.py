"""Built-in workflow catalogue."""

from mycontext.workflow.types import WorkflowDefinition, WorkflowStep


def _step(
    id: str,
    name: str,
    description: str,
    command: str,
    dependencies: tuple[str, ...] = (),
    *,
    auto: bool = True,
    minutes: int,
    timed: bool = True,
) -> WorkflowStep:
    return WorkflowStep(
        id=id,
        name=name,
        description=description,
        command=command,
        dependencies=dependencies,
        auto_continue=auto,
        estimated_minutes=minutes,
        estimated_duration_ms=minutes * 60_000 if timed else None,
    )


COMPLETE_SETUP = WorkflowDefinition(
    id="complete-setup",
    name="Complete Project Setup",
    description="Set up a new MyContext project from scratch to production-ready",
    category="setup",
    steps=(
        _step("init", "Initialize Project",
              "Create project structure and basic configuration",
              "mycontext init . --framework instantdb", minutes=5),
        _step("setup-shadcn", "Set Up shadcn/ui",
              "Install and configure shadcn/ui components",
              "mycontext setup-shadcn --all", ("init",), minutes=8),
        _step("compile-prd", "Compile PRD",
              "Generate comprehensive PRD from context files",
              "mycontext compile-prd", ("init",), minutes=3),
        _step("generate-types", "Generate Types",
              "Create TypeScript types from PRD",
              "mycontext generate types", ("compile-prd",), minutes=5),
        _step("generate-brand", "Generate Brand Guidelines",
              "Create brand guidelines and design tokens",
              "mycontext generate brand", ("compile-prd",), minutes=3),
        _step("generate-component-list", "Generate Component List",
              "Create comprehensive component list",
              "mycontext generate component-list", ("generate-types",), minutes=4),
        _step("generate-components", "Generate Components",
              "Generate all React components with tests",
              "mycontext generate-components all --with-tests",
              ("generate-component-list", "setup-shadcn"), minutes=15),
        _step("validate", "Validate Project",
              "Run comprehensive project validation",
              "mycontext validate", ("generate-components",), auto=False, minutes=2),
    ),
)

COMPONENT_DEVELOPMENT = WorkflowDefinition(
    id="component-development",
    name="Component Development",
    description="Develop and refine React components",
    category="development",
    steps=(
        _step("generate-component", "Generate Component",
              "Generate a specific component",
              "mycontext generate-components Button", minutes=3, timed=False),
        _step("preview-component", "Preview Component",
              "Preview component at hosted Studio (https://studio.mycontext.app)",
              "echo 'Visit https://studio.mycontext.app to preview your components'",
              ("generate-component",), auto=False, minutes=1, timed=False),
        _step("validate-component", "Validate Component",
              "Run validation on generated component",
              "mycontext validate --component Button",
              ("generate-component",), auto=False, minutes=1, timed=False),
    ),
)


def _app_setup(
    id: str,
    name: str,
    description: str,
    *,
    label: str,
    key: str,
    app_description: str,
    init_subject: str,
    validate_subject: str,
    shadcn_description: str,
    components_description: str,
    architecture_minutes: int,
) -> WorkflowDefinition:
    """The shared shape of the application-type setup workflows."""
    components_id = f"generate-{key}-components"
    return WorkflowDefinition(
        id=id,
        name=name,
        description=description,
        category="setup",
        steps=(
            _step("init", f"Initialize {label} Project",
                  f"Create project structure for {init_subject}",
                  f"mycontext init . --framework instantdb --description '{app_description}'",
                  minutes=5),
            _step("setup-shadcn", "Set Up shadcn/ui", shadcn_description,
                  "mycontext setup-shadcn --all", ("init",), minutes=8),
            _step("compile-prd", f"Compile {label} PRD",
                  f"Generate comprehensive PRD for {label.lower()} features",
                  "mycontext compile-prd", ("init",), minutes=3),
            _step("generate-architecture", f"Generate {label} Architecture",
                  f"Create types, brand, and component structure for {label.lower()}",
                  "mycontext generate architecture --auto-continue",
                  ("compile-prd",), minutes=architecture_minutes),
            _step(components_id, f"Generate {label} Components", components_description,
                  f"mycontext generate-components all --category {key} --with-tests",
                  ("generate-architecture",), minutes=12),
            _step(f"validate-{key}", f"Validate {label} Setup",
                  f"Run comprehensive validation for {validate_subject}",
                  "mycontext validate", (components_id,), auto=False, minutes=2),
        ),
    )


ECOMMERCE_SETUP = _app_setup(
    "ecommerce-setup",
    "E-commerce Application Setup",
    "Complete setup for e-commerce applications with shopping cart, products, and checkout",
    label="E-commerce",
    key="ecommerce",
    app_description="E-commerce application with shopping cart and checkout",
    init_subject="e-commerce application",
    validate_subject="e-commerce application",
    shadcn_description="Install essential UI components for e-commerce",
    components_description="Generate shopping cart, product display, and checkout components",
    architecture_minutes=20,
)

DASHBOARD_SETUP = _app_setup(
    "dashboard-setup",
    "Dashboard Application Setup",
    "Complete setup for analytics dashboards with charts, metrics, and data visualization",
    label="Dashboard",
    key="dashboard",
    app_description="Analytics dashboard with charts and metrics",
    init_subject="analytics dashboard",
    validate_subject="dashboard application",
    shadcn_description="Install dashboard UI components",
    components_description="Generate charts, metrics cards, and data tables",
    architecture_minutes=18,
)

CONTENT_BLOG_SETUP = _app_setup(
    "content-blog-setup",
    "Content/Blog Application Setup",
    "Complete setup for content management with articles, comments, and CMS features",
    label="Content",
    key="content",
    app_description="Content management system with articles and comments",
    init_subject="content/blog application",
    validate_subject="content application",
    shadcn_description="Install content UI components",
    components_description="Generate articles, comments, and content management components",
    architecture_minutes=16,
)


PRODUCTION_DEPLOYMENT = WorkflowDefinition(
    id="production-deployment",
    name="Production Deployment",
    description="Prepare and deploy application to production environment",
    category="deployment",
    steps=(
        _step("validate-production", "Production Validation",
              "Run comprehensive validation for production readiness",
              "mycontext validate", minutes=3),
        _step("promote-production", "Promote to Production",
              "Move validated components to production directory",
              "mycontext promote --all", ("validate-production",), minutes=2),
        _step("build-production", "Build for Production",
              "Create optimized production build",
              "npm run build", ("promote-production",), minutes=8),
        _step("deploy-checklist", "Deployment Checklist",
              "Final deployment preparation checklist",
              "mycontext status --deployment-check", ("build-production",),
              auto=False, minutes=2),
    ),
)

FEATURE_ENHANCEMENT = WorkflowDefinition(
    id="feature-enhancement",
    name="Feature Enhancement",
    description="Add new features to existing applications",
    category="development",
    steps=(
        _step("analyze-current", "Analyze Current State",
              "Review existing components and architecture",
              "mycontext status", minutes=2),
        _step("update-prd", "Update PRD",
              "Add new requirements to PRD",
              "mycontext compile-prd", ("analyze-current",), minutes=3),
        _step("generate-enhanced-types", "Generate Enhanced Types",
              "Update types for new features",
              "mycontext generate types", ("update-prd",), minutes=5),
        _step("generate-new-components", "Generate New Components",
              "Create components for new features",
              "mycontext generate-components all --with-tests",
              ("generate-enhanced-types",), minutes=15),
        _step("validate-enhancement", "Validate Enhancement",
              "Ensure new features work correctly",
              "mycontext validate", ("generate-new-components",), auto=False, minutes=3),
    ),
)

BUILTIN_WORKFLOWS: tuple[WorkflowDefinition, ...] = (
    COMPLETE_SETUP,
    COMPONENT_DEVELOPMENT,
    ECOMMERCE_SETUP,
    DASHBOARD_SETUP,
    CONTENT_BLOG_SETUP,
    PRODUCTION_DEPLOYMENT,
    FEATURE_ENHANCEMENT,
)
