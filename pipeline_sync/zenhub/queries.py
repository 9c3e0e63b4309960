"""GraphQL documents sent to the tracking board."""

ISSUE_FIELDS = """
    id
    number
    title
    body
    pipelineIssue(workspaceId: $workspaceId) {
        pipeline {
            id
            name
        }
    }
"""

SEARCH_ISSUES = (
    """
query searchIssues($workspaceId: ID!, $query: String!, $first: Int!) {
    searchIssues(workspaceId: $workspaceId, query: $query, filters: {}, first: $first) {
        nodes {"""
    + ISSUE_FIELDS
    + """
        }
    }
}
"""
)

CREATE_ISSUE = (
    """
mutation createIssue($input: CreateIssueInput!, $workspaceId: ID!) {
    createIssue(input: $input) {
        issue {"""
    + ISSUE_FIELDS
    + """
        }
    }
}
"""
)

MOVE_ISSUE = """
mutation moveIssue($input: MoveIssueInput!, $workspaceId: ID!) {
    moveIssue(input: $input) {
        issue {
            id
            pipelineIssue(workspaceId: $workspaceId) {
                pipeline {
                    id
                    name
                }
            }
        }
    }
}
"""

WORKSPACE_PIPELINES = """
query getWorkspace($workspaceId: ID!) {
    workspace(id: $workspaceId) {
        id
        name
        pipelines {
            id
            name
        }
    }
}
"""
