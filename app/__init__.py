"""
Second Brain Service - 应用主包

个人知识库服务的核心应用包，包含以下子模块：
- api/        : API 路由和依赖注入（含限流依赖）
- db/         : 数据库连接和会话管理
- models/     : SQLAlchemy ORM 数据模型
- schemas/    : Pydantic 请求/响应模式
- services/   : 业务逻辑服务层（知识条目、AI 增强、问答、输入校验）
- infra/      : 基础设施（LLM、Embedding、pgvector、限流器、日志）
- middleware/ : 请求追踪中间件

项目架构遵循分层设计：
    API层 → 服务层 → 数据访问层 → 基础设施层
"""
