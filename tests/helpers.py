"""Template lookups shared by the pipeline tests."""
import json


def pipeline_stage_names(template):
    (pipeline,) = template.find_resources("AWS::CodePipeline::Pipeline").values()
    return [stage["Name"] for stage in pipeline["Properties"]["Stages"]]


def pipeline_stage(template, name):
    (pipeline,) = template.find_resources("AWS::CodePipeline::Pipeline").values()
    return next(stage for stage in pipeline["Properties"]["Stages"] if stage["Name"] == name)


def codebuild_projects(template):
    """Map CodeBuild project name -> Properties."""
    return {
        resource["Properties"]["Name"]: resource["Properties"]
        for resource in template.find_resources("AWS::CodeBuild::Project").values()
    }


def build_spec_text(project):
    """BuildSpec as text; specs that embed tokens are Fn::Join objects."""
    return json.dumps(project["Source"]["BuildSpec"])
